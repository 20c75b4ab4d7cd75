import click


class MinInt(click.ParamType):
    """Whole numbers no lower than ``min_value``, e.g. block confirmations."""

    name = "minint"

    def __init__(self, min_value):
        self.min_value = min_value

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            number = value
        else:
            try:
                number = int(value)
            except ValueError:
                self.fail(f"expected a whole number, got '{value}'", param, ctx)
        if number < self.min_value:
            self.fail(f"must be at least {self.min_value}, got {number}", param, ctx)
        return number


class KeyValue(click.ParamType):
    """A ``KEY=VALUE`` configuration override."""

    name = "key=value"

    def convert(self, value, param, ctx):
        if isinstance(value, tuple):
            return value
        key, delimiter, raw = value.partition("=")
        if not delimiter or not key.strip():
            self.fail(f"Expected KEY=VALUE, got '{value}'", param, ctx)
        return key.strip(), raw.strip()
