from flask import request


def query_flag(*names: str, default: bool = False) -> bool:
    """Read a boolean query param, accepting camelCase or snake_case spellings."""
    for name in names:
        raw = request.args.get(name)
        if raw is not None:
            return raw.strip().lower() in {"1", "true", "yes", "on"}
    return default
