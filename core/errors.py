class FactUnavailableError(RuntimeError):
    """A required host or VM fact could not be retrieved."""

    def __init__(self, fact: str, detail: str):
        self.fact = fact
        self.detail = detail
        super().__init__(f"{fact} unavailable: {detail}")
