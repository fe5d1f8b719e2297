"""admission/errors.py -- Fault raised when the admission pipeline cannot decide."""


class AdmissionError(Exception):
    """A stage failed (e.g. rate-limit storage unreachable).

    The API layer answers with a 500 and does not let the request through.
    """
