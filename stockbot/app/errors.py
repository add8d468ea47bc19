class AppError(Exception):
    """Base application error"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.code


class ConfigError(AppError):
    """Missing or invalid configuration"""

    code = "CONFIG_ERROR"


class DatabaseError(AppError):
    """MongoDB connection or query failure"""


class InvalidQuestionError(AppError):
    """Question failed input validation"""

    code = "INVALID_QUESTION"
    status_code = 400


class SessionNotFoundError(AppError):
    """Session ID not found in database"""

    code = "SESSION_NOT_FOUND"
    status_code = 404


class AgentUnavailableError(AppError):
    """Agent or LLM provider call failed"""

    code = "LLM_UNAVAILABLE"
    status_code = 503


class ToolInvocationError(AppError):
    """Tool execution failed (price, company, search lookups)"""

    code = "TOOL_ERROR"


class SymbolNotFoundError(ToolInvocationError):
    """Ticker symbol missing from the dataset"""

    code = "SYMBOL_NOT_FOUND"
    status_code = 404
