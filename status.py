"""
SugarStatus — status text for a glucose value.
"""

# Shown when the latest reading couldn't be fetched
ERROR_STATUS = "Tell me to change my cgm"


def format_status(value: int) -> str:
    """Turn a glucose value (mg/dL) into the status line."""
    if value < 60:
        return f"I'm in sugar withdrawls, send help ({value} mg/dL)"
    elif value < 80:
        return f"Tell me to eat something, I'm a little low ({value} mg/dL)"
    elif value < 200:
        return f"We chillin ({value} mg/dL)"
    elif value < 300:
        return f"I'm a little high, tell me to do some pushups ({value} mg/dL)"
    return f"I'm currently ODing on sugar, send help ({value} mg/dL)"
