"""Domain errors raised by the engine.

None of these carry a transport status code; the request layer maps them to
responses. Persistence failures are never wrapped in one of these.
"""


class HackpointsError(Exception):
    """Base class for every domain error."""


# --- Scrapper ---

class ScrapperError(HackpointsError):
    pass


class SessionAlreadyStartedError(ScrapperError):
    def __init__(self):
        super().__init__("Session already started")


class SessionNotFoundError(ScrapperError):
    def __init__(self):
        super().__init__("No active session found")


class InvalidSessionStateError(ScrapperError):
    def __init__(self, current_state: str, expected_state: str):
        self.current_state = current_state
        self.expected_state = expected_state
        super().__init__(f"Invalid session state: {current_state}. Expected: {expected_state}")


class InsufficientSessionDurationError(ScrapperError):
    def __init__(self, minutes: int, required_minutes: int):
        self.minutes = minutes
        self.required_minutes = required_minutes
        super().__init__(
            f"Session duration ({minutes} minutes) is less than required ({required_minutes} minutes)"
        )


class ScrapNotFoundError(ScrapperError):
    def __init__(self, scrap_id: int):
        self.scrap_id = scrap_id
        super().__init__(f"Scrap {scrap_id} not found")


class NotEnoughScrapsError(ScrapperError):
    def __init__(self):
        super().__init__("Not enough scraps available for voting")


class SelfVoteError(ScrapperError):
    def __init__(self):
        super().__init__("Cannot vote on your own scrap")


class VoteRateLimitError(ScrapperError):
    def __init__(self, max_votes: int, retry_after_seconds: int):
        self.max_votes = max_votes
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Vote limit of {max_votes} per hour reached, try again in {retry_after_seconds} seconds"
        )


class VoteNotFoundError(ScrapperError):
    def __init__(self, vote_id: int):
        self.vote_id = vote_id
        super().__init__(f"Vote {vote_id} not found")


# --- Points ---

class PointsError(HackpointsError):
    pass


class TransactionNotFoundError(PointsError):
    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class SelfReviewError(PointsError):
    def __init__(self):
        super().__init__("Cannot review your own transaction")


class TransactionNotPendingError(PointsError):
    def __init__(self, transaction_id: int, status: str):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(f"Transaction {transaction_id} is not pending (status: {status})")


# --- Authorization ---

class AuthorizationError(HackpointsError):
    pass


class NotAuthenticatedError(AuthorizationError):
    def __init__(self):
        super().__init__("Not authenticated")


class NotOrganizerError(AuthorizationError):
    def __init__(self):
        super().__init__("Organizer permission required")
