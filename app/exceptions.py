from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "An unexpected error occurred"

    def __init__(self, detail: str | None = None):
        if detail:
            self.detail = detail
        super().__init__(self.detail)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid input"


class NotAuthenticatedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Not authenticated"


class NotAuthorizedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "You are not allowed to perform this action"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "No longer available"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conflicts with the current state"


class AlreadyFriendsError(ConflictError):
    detail = "You are already friends"


class RequestAlreadyPendingError(ConflictError):
    detail = "A friend request is already pending"


class AlreadyRespondedError(ConflictError):
    detail = "This request was already handled"


class FriendshipStateError(ConflictError):
    detail = "Friendship is not in a state that allows this action"


class UsernameTakenError(ConflictError):
    detail = "Username is already taken"


class RateLimitExceededError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    detail = "Rate limit exceeded. Try again later."


class CollaboratorUnavailableError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Service temporarily unavailable"
