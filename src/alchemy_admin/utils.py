import re
import unicodedata
from typing import Callable

LOWER_UPPER = re.compile(r'([a-z0-9])([A-Z])')
NOT_SLUG = re.compile(r'[^a-z0-9]+')


def snake_case(camel: str) -> str:
    """Transform any camel case string into a snake case (`OwnerId` -> `owner_id`)."""
    return LOWER_UPPER.sub(r'\1_\2', camel).lower()


def slugify(text: str) -> str:
    """ASCII-fold `text` and turn it into an URL-safe slug."""
    folded = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    return NOT_SLUG.sub('-', folded.lower()).strip('-')


def _dict_merge(a: dict, b: dict, reduce_func: Callable = None) -> dict:
    sa, sb = map(set, (a, b))
    a_only, b_only = sa - sb, sb - sa
    both = sa.intersection(sb)
    for key in a_only:
        yield key, a[key]
    for key in b_only:
        yield key, b[key]
    for key in both:
        value = a[key]
        if isinstance(value, dict) and isinstance(b[key], dict):
            yield key, dict(_dict_merge(value, b[key], reduce_func))
        elif reduce_func:
            yield key, reduce_func(value, b[key])
        else:
            yield key, value


def dict_merge(a: dict, b: dict, reduce_func: Callable = None) -> dict:
    """Deep merge two dicts, `a` wins on conflicting leaves."""
    return dict(_dict_merge(a, b, reduce_func))


def load_class(class_path: str) -> type:
    full_path = class_path.rsplit('.')
    class_name = full_path.pop()
    module = __import__('.'.join(full_path), fromlist=[class_name])
    return getattr(module, class_name)
