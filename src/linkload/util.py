from typing import Iterable, TypeVar

T = TypeVar("T")


def head_or_none(values: Iterable[T]) -> T | None:
    return next(iter(values), None)


def must(value: T | None) -> T:
    assert value is not None
    return value
