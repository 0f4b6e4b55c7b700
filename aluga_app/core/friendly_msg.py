FRIENDLY_MESSAGES = {
    "CircuitOpenError": "The payment service is temporarily unavailable. Please try again shortly.",
    "ConnectionError": "Unable to connect to a required service. Please try again later.",
    "TimeoutError": "The request took too long. Please try again later.",
    "IntegrityError": "This change conflicts with existing data. Please refresh and try again.",
    "SQLAlchemyError": "Temporary issue while accessing data. Please try again shortly.",
    "DatabaseError": "Temporary issue while accessing data. Please try again shortly.",
    "ValueError": "Invalid data received. Please check your input and try again.",
    "KeyError": "Some required information is missing.",
    "PermissionError": "You don't have permission to perform this action.",
}


def get_friendly_message(error: Exception) -> str:
    for cls in type(error).__mro__:
        msg = FRIENDLY_MESSAGES.get(cls.__name__)
        if msg:
            return msg
    return "Something went wrong on our end. Please try again."
