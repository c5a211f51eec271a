# midwestea/schemas/student.py
# Pydantic request models for admin student endpoints

from typing import Any

from pydantic import BaseModel


class UpdateEmailRequest(BaseModel):
    # Any so a non-string value gets the handler's 400 message
    email: Any = None
