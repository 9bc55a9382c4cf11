"""URL shortener service: short-code generation, cache-aside resolution and click accounting."""
