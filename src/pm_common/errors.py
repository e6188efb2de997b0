"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Caller identity
  2xxx: Bankroll
  3xxx: Market
  4xxx: Bet
  5xxx: Leaderboard
  9xxx: System

Every error is raised to the caller; nothing in the core retries.
PersistenceFailureError is the only one where a retry by the caller makes sense.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Caller identity ---

class MissingUserIdError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "X-User-Id header is required", 401)


class ForbiddenError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1003, f"User {user_id} is not allowed to perform this action", 403)


# --- 2xxx: Bankroll ---

class InsufficientBankrollError(AppError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2001,
            f"Insufficient bankroll: required {required}, available {available}",
            422,
        )


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"User not found: {user_id}", 404)


# --- 3xxx: Market ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found or inactive: {market_id}", 404)


class MarketExpiredError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3002, f"Market has expired: {market_id}", 422)


class InvalidDeadlineError(AppError):
    def __init__(self, deadline: str) -> None:
        super().__init__(3003, f"Deadline must be in the future: {deadline}", 422)


class InvalidQuestionError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "Question must not be empty", 422)


class AlreadyResolvedError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3005, f"Market already resolved: {market_id}", 409)


class NoParticipantsError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3006, f"No bets placed on market {market_id}", 422)


# --- 4xxx: Bet ---

class InvalidProbabilityError(AppError):
    def __init__(self, probability: float) -> None:
        super().__init__(
            4001, f"Probability must be between 0 and 1, got {probability}", 422
        )


# --- 5xxx: Leaderboard ---

class UnknownLeaderboardError(AppError):
    def __init__(self, kind: str) -> None:
        super().__init__(5001, f"Unknown leaderboard: {kind}", 404)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class DuplicateIdError(AppError):
    def __init__(self, entity_id: str) -> None:
        super().__init__(9003, f"Duplicate id: {entity_id}", 409)


class PersistenceFailureError(AppError):
    def __init__(self, detail: str = "Storage operation failed") -> None:
        super().__init__(9004, detail, 503)
