"""
Standardized exception hierarchy for the gamification engine
Provides rich context, consistent logging, and user-friendly error messages

Validation errors map to 4xx responses in the HTTP layer, everything under
DatabaseError maps to 5xx. Nothing here retries or rolls back.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class GamifyError(Exception):
    """
    Base exception for all gamification errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise GamifyError(
            message="Failed to award points",
            user_id="u-42",
            operation="award",
            context={"source": "task_completed"}
        )
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        level = logging.WARNING if self.status_code < 500 else logging.ERROR
        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(level, f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.log(level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "status_code": self.status_code,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (caller input / business rules)
# ==========================================

class ValidationError(GamifyError):
    """
    Raised when a request fails a business rule

    Example:
        raise ValidationError(
            message="Amount must be positive",
            field="amount",
            value=-5,
            user_id="u-42"
        )
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        merged_context = {"field": field, "value": value}
        merged_context.update(context or {})
        super().__init__(
            message=message,
            user_message=user_message or (f"Invalid {field}: {message}" if field else message),
            context=merged_context,
            **kwargs
        )


class InsufficientBalanceError(ValidationError):
    """Currency balance is lower than the amount required"""

    def __init__(self, balance: int, required: int, **kwargs):
        self.balance = balance
        self.required = required
        super().__init__(
            message=f"Insufficient balance: have {balance}, need {required}",
            field="balance",
            value=balance,
            user_message="You don't have enough coins for this.",
            context={"required": required},
            **kwargs
        )


class InsufficientPointsError(ValidationError):
    """Point conversion would yield no currency"""

    def __init__(self, points: int, rate: int, **kwargs):
        super().__init__(
            message=f"{points} points at rate {rate} yields no currency",
            field="points",
            value=points,
            user_message="Not enough points to convert.",
            context={"rate": rate},
            **kwargs
        )


class RewardUnavailableError(ValidationError):
    """Reward is inactive"""

    def __init__(self, reward_id: str, **kwargs):
        super().__init__(
            message=f"Reward {reward_id} is not available",
            field="reward",
            value=reward_id,
            user_message="This reward is not available.",
            **kwargs
        )


class OutOfStockError(ValidationError):
    """Reward stock is lower than the requested quantity"""

    def __init__(self, reward_id: str, stock: int, quantity: int, **kwargs):
        super().__init__(
            message=f"Reward {reward_id} has {stock} in stock, requested {quantity}",
            field="quantity",
            value=quantity,
            user_message="Insufficient stock for this reward.",
            context={"stock": stock},
            **kwargs
        )


class SocialBadgeError(ValidationError):
    """Badge cannot be given by a peer"""
    pass


class DuplicateSocialBadgeError(SocialBadgeError):
    """Same social badge already given to the same user today"""

    def __init__(self, badge_id: str, to_user_id: str, **kwargs):
        super().__init__(
            message=f"Badge {badge_id} already given to {to_user_id} today",
            field="badge",
            value=badge_id,
            user_message="This badge was already given today. Try again tomorrow.",
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(GamifyError):
    """
    Base class for storage-related errors
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to the database. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your data. Please try again.",
            context={"query": query},
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """Requested record does not exist"""

    status_code = 404

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class ConcurrencyError(DatabaseError):
    """Versioned write lost a race against another writer"""

    status_code = 409

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            message=message,
            user_message="Your update collided with another one. Please try again.",
            context={
                "record_type": record_type,
                "record_id": record_id,
                "expected_version": expected_version,
            },
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(GamifyError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> GamifyError:
    """
    Wrap psycopg exceptions into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate GamifyError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="add_point_entry", user_id="u-42")
    """
    import psycopg

    if isinstance(error, GamifyError):
        return error

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            cause=error
        )

    return GamifyError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
