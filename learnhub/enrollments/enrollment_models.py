from typing import Any

from pydantic import BaseModel


class QuizSubmission(BaseModel):
    # Left untyped so a non-list payload reaches the service and gets a 400 with a clear message
    answers: Any = None
