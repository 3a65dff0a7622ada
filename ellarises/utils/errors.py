class ValidationError(Exception):
    """Form input rejected; the message is safe to show next to the form."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
