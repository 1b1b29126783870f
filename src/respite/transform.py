"""Module containing reply transformers for high-level Redis commands."""

import collections.abc
import typing

__all__: collections.abc.Sequence[str] = (
    "transform",
    "transform_keys",
    "transform_info",
    "transform_mget",
    "transform_hgetall",
    "transform_type",
)


Transformer: typing.TypeAlias = typing.Callable[[typing.Any, typing.Any], typing.Any]


def _pairwise_to_dict(arg: collections.abc.Iterable[typing.Any]) -> dict[typing.Any, typing.Any]:
    arg_iter = iter(arg)
    return dict(zip(arg_iter, arg_iter, strict=True))


def transform_keys(data: typing.Any, _context: object = None) -> typing.Any:  # noqa: ANN401
    """Split a legacy space-joined KEYS reply into a list."""
    if isinstance(data, bytes):
        return data.split(b" ") if data else []

    return data


def transform_info(data: bytes | None, _context: object = None) -> dict[str, str]:
    """Parse the ``key:value`` lines of an INFO reply into a dict.

    Section headers (``# Server``) and blank lines are skipped.
    """
    info: dict[str, str] = {}
    if not data:
        return info

    for raw_line in data.decode("utf-8", errors="replace").split("\n"):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, _, value = line.partition(":")
        info[key] = value.strip()

    return info


def transform_mget(
    data: list[typing.Any] | None,
    keys: collections.abc.Sequence[typing.Any] | None,
) -> dict[typing.Any, typing.Any] | None:
    """Zip the requested keys with their values; missing keys map to None."""
    if data is None or keys is None:
        return data  # type: ignore[return-value]

    return dict(zip(keys, data, strict=True))


def transform_hgetall(
    data: list[typing.Any] | None,
    _context: object = None,
) -> dict[typing.Any, typing.Any]:
    """Transform a flat ``[field, value, field, value, ...]`` reply into a dict."""
    if not data:
        return {}

    return _pairwise_to_dict(data)


def transform_type(data: typing.Any, _context: object = None) -> str | None:  # noqa: ANN401
    """Map the ``none`` type to None, so a missing key is falsy."""
    name = str(data)
    return None if name == "none" else name


TRANSFORMERS: typing.Final[collections.abc.Mapping[str, Transformer]] = {
    "KEYS": transform_keys,
    "INFO": transform_info,
    "MGET": transform_mget,
    "HMGET": transform_mget,
    "HGETALL": transform_hgetall,
    "TYPE": transform_type,
}


def transform(name: str, data: typing.Any, context: typing.Any = None) -> typing.Any:  # noqa: ANN401
    """Post-process the reply to command ``name``; unknown commands pass through."""
    transformer = TRANSFORMERS.get(name)
    if transformer is None:
        return data

    return transformer(data, context)
