from typing import Any, Dict, List


class PostsError(Exception):
    """Base class for errors that map to a client-facing HTTP response"""
    status_code = 500

    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg

    def to_content(self) -> Dict[str, Any]:
        return {"msg": self.msg}


class ValidationError(PostsError):
    """A required field is missing or empty"""
    status_code = 400

    def __init__(self, param: str, msg: str, location: str = "body"):
        super().__init__(msg)
        self.param = param
        self.location = location

    def to_content(self) -> Dict[str, List[Dict[str, str]]]:
        return {"errors": [{"msg": self.msg, "param": self.param, "location": self.location}]}


class NotFound(PostsError):
    status_code = 404


class Forbidden(PostsError):
    # Ownership failures are answered with 401
    status_code = 401


class Conflict(PostsError):
    status_code = 400
