"""
Errors raised by the service layer.

Each carries the HTTP status the API answers with; app.py turns them into
{"error": message} responses.
"""


class StudyMateError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(StudyMateError):
    status_code = 400


class UnauthorizedError(StudyMateError):
    status_code = 401


class ForbiddenError(StudyMateError):
    status_code = 403


class NotFoundError(StudyMateError):
    status_code = 404


class AlreadyExistsError(StudyMateError):
    status_code = 409


class ScheduleConflictError(BadRequestError):
    """A new weekly slot overlaps a slot of another subject of the same student."""

    def __init__(self, slot: dict, subject_name: str, existing_slot: dict):
        self.slot = slot
        self.subject_name = subject_name
        self.existing_slot = existing_slot
        super().__init__(
            "Schedule conflict: {} {}-{} overlaps with subject \"{}\" ({} {}-{})".format(
                slot["day"], slot["start"], slot["end"],
                subject_name,
                existing_slot["day"], existing_slot["start"], existing_slot["end"],
            )
        )
