from abc import ABC, abstractmethod

import click

from ..errors import BatchModeError


class Prompter(ABC):
    """Asks the user to pick or type values."""

    @abstractmethod
    def select_one(self, message, options, default=None):
        """Pick one of the options."""
        pass

    @abstractmethod
    def select_many(self, message, options, defaults=None):
        """Pick any number of the options."""
        pass

    @abstractmethod
    def prompt_text(self, message, default="", validator=None):
        """Read a line of text. validator returns an error message or None."""
        pass

    @abstractmethod
    def prompt_secret(self, message):
        """Read a value without echoing it."""
        pass

    @abstractmethod
    def confirm(self, message, default=False):
        """Ask a yes/no question."""
        pass


class ClickPrompter(Prompter):
    def __init__(self, err=False):
        self.err = err

    def select_one(self, message, options, default=None):
        if not options:
            raise ValueError("nothing to select from")
        for idx, option in enumerate(options, 1):
            click.echo(f"  {idx}) {option}", err=self.err)
        default_index = options.index(default) + 1 if default in options else None
        choice = click.prompt(
            message, type=click.IntRange(1, len(options)), default=default_index, err=self.err)
        return options[choice - 1]

    def select_many(self, message, options, defaults=None):
        if not options:
            return []
        for idx, option in enumerate(options, 1):
            click.echo(f"  {idx}) {option}", err=self.err)
        default = ",".join(str(options.index(d) + 1) for d in (defaults or []) if d in options)
        while True:
            raw = click.prompt(message + " (comma separated numbers)", default=default, err=self.err)
            try:
                picked = [int(p) for p in raw.replace(" ", "").split(",") if p]
            except ValueError:
                click.echo("Please enter numbers separated by commas.", err=self.err)
                continue
            if all(1 <= p <= len(options) for p in picked):
                return [options[p - 1] for p in picked]
            click.echo(f"Numbers must be between 1 and {len(options)}.", err=self.err)

    def prompt_text(self, message, default="", validator=None):
        while True:
            value = click.prompt(message, default=default or None, err=self.err)
            problem = validator(value) if validator else None
            if not problem:
                return value
            click.echo(problem, err=True)

    def prompt_secret(self, message):
        return click.prompt(message, hide_input=True, err=self.err)

    def confirm(self, message, default=False):
        return click.confirm(message, default=default, err=self.err)


class BatchPrompter(Prompter):
    """Fails fast on any question. Used when no user is there to answer."""

    def _fail(self, message):
        raise BatchModeError(f"cannot prompt in batch mode: {message}")

    def select_one(self, message, options, default=None):
        self._fail(message)

    def select_many(self, message, options, defaults=None):
        self._fail(message)

    def prompt_text(self, message, default="", validator=None):
        self._fail(message)

    def prompt_secret(self, message):
        self._fail(message)

    def confirm(self, message, default=False):
        self._fail(message)
