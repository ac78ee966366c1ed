"""The `admin` tag mini-language.

A tag is a comma separated list of `key=value` or bare `key` tokens::

    admin_field('search,list,label=Full name,width=6')

The literal tag `-` disables the field. Recognized keys are `field`,
`label`, `list`, `search`, `default` and `width`; any other key is kept in
`FieldOptions.extra` for the field variant to pick up.
"""
from typing import Dict, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .exceptions import ConfigError, TagParseError

SKIP = '-'
KNOWN_KEYS = ('field', 'label', 'list', 'search', 'default', 'width')


def parse_tag(tag: Optional[str]) -> Dict[str, Optional[str]]:
    """Split `tag` into an option mapping, bare keys map to `None`."""
    if tag is None:
        return {}
    tag = tag.strip()
    if not tag:
        return {}
    if tag == SKIP:
        return {SKIP: None}

    options = {}
    for token in tag.split(','):
        key, sep, value = token.partition('=')
        key = key.strip()
        if not key:
            raise TagParseError(f'Empty key in tag "{tag}"')
        if key == SKIP:
            raise TagParseError(f'"-" can\'t be combined with other options in tag "{tag}"')
        if key in options:
            raise TagParseError(f'Duplicated key "{key}" in tag "{tag}"')
        options[key] = value.strip() if sep else None
    return options


class FieldOptions(BaseModel):
    """Validated configuration of one field, built once at registration."""
    skip: bool = False
    field: Optional[str] = None
    label: Optional[str] = None
    list: bool = False
    search: bool = False
    default: Optional[str] = None
    width: Optional[int] = Field(default=None, ge=1, le=12)
    extra: Dict[str, Optional[str]] = {}

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> 'FieldOptions':
        """Parse and validate a raw tag."""
        options = parse_tag(tag)
        if SKIP in options:
            return cls(skip=True)
        known = {}
        for key in KNOWN_KEYS:
            if key not in options:
                continue
            value = options[key]
            if key in ('list', 'search'):
                known[key] = True if value is None else value
            elif value is None:
                raise ConfigError(f'Option "{key}" needs a value')
            else:
                known[key] = value
        extra = {k: v for k, v in options.items() if k not in KNOWN_KEYS}
        try:
            return cls(extra=extra, **known)
        except PydanticValidationError as exc:
            raise ConfigError(f'Invalid options in tag "{tag}": {exc.errors()[0]["msg"]}') from exc
