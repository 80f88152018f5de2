from apps.utils.exceptions import ValidationError


def validate_positive_int(value, field):
    # bool is an int subclass; "True" units are not a quantity
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer.", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer.", field=field)
    if number != value and str(number) != str(value).strip():
        raise ValidationError(f"{field} must be a positive integer.", field=field)
    if number < 1:
        raise ValidationError(f"{field} must be a positive integer.", field=field)
    return number


def validate_length(value, field, min_length=0, max_length=None, required=False):
    """
    Trims and length-checks a free-text field. Returns the cleaned string.
    """
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string.", field=field)

    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field} is required.", field=field)
    if value and len(value) < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters.", field=field
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{field} must be less than {max_length} characters.", field=field
        )
    return value


def validate_choice(value, field, choices):
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}. Expected one of: {', '.join(sorted(choices))}.", field=field
        )
    return value
