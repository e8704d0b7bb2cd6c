class InvalidConfiguration(ValueError):
    """Raised when a proxy handler is built with an unusable upstream location."""

    def __init__(self, value, message: str = "url must be a str or httpx.URL"):
        self.value = value
        super().__init__(f"{message} (got {value!r})")
