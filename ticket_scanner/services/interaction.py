"""Operator interaction without a blocking UI.

Services ask for confirmation or input through an :class:`Interaction`
instead of calling a toolkit directly, so the web layer answers from the
submitted form and tests answer from a script.
"""
from abc import ABC, abstractmethod
from typing import Mapping

TRUTHY = {"1", "true", "yes", "on"}


class Interaction(ABC):
    @abstractmethod
    def confirm(self, message: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def prompt(self, message: str) -> str | None:
        raise NotImplementedError


class FormInteraction(Interaction):
    def __init__(
        self,
        form: Mapping[str, str],
        fields: Mapping[str, str] | None = None,
    ) -> None:
        self._form = form
        self._fields = dict(fields or {})

    def confirm(self, message: str) -> bool:
        return str(self._form.get("confirm", "")).strip().lower() in TRUTHY

    def prompt(self, message: str) -> str | None:
        field = self._fields.get(message)
        if field is None:
            return None
        value = self._form.get(field)
        return None if value is None else str(value)
