import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import pytest

from alchemy_admin import admin_field
from alchemy_admin.exceptions import ConfigError, RegistrationError, TagParseError
from alchemy_admin.fields import BooleanField, FileField, FloatField, ForeignKeyField, IntField, TextField, \
    TimeField
from alchemy_admin.registry import Registry
from alchemy_admin.utils import snake_case
from tests.fixtures import Author, Book, Category, Person


def test_register_person():
    registry = Registry()
    group = registry.group('People & Co')
    model = group.register(Person)

    assert group.slug == 'people-co'
    assert group.models == [model]
    assert registry['person'] is model
    assert model.name == 'Person'
    assert model.plural_name == 'People'
    assert model.table_name == 'Person'
    assert model.field_names == ['id', 'name', 'age']
    assert model.table_columns == ['id', 'name', 'age']
    assert [type(f) for f in model.fields] == [IntField, TextField, IntField]
    assert model.searchable_columns == ['name']
    assert model.list_columns == ['id', 'name', 'age']
    assert isinstance(model.fields, tuple)


def test_identifier_always_listed():
    @dataclass
    class Tag:
        id: int
        name: str

    model = Registry().group('g').register(Tag)
    assert model.pk.list
    assert not model.fields[1].list


def test_first_column_cant_be_skipped():
    @dataclass
    class Broken:
        id: int = admin_field('-')

    with pytest.raises(RegistrationError, match="first column can't be skipped"):
        Registry().group('g').register(Broken)


def test_skipped_field():
    registry = Registry()
    model = registry.group('g').register(Category)
    assert 'notes' not in model.field_names


def test_malformed_tag():
    @dataclass
    class Broken:
        id: int
        name: str = admin_field('list,,search')

    with pytest.raises(TagParseError):
        Registry().group('g').register(Broken)


def test_invalid_width():
    @dataclass
    class Broken:
        id: int
        name: str = admin_field('width=wide')

    with pytest.raises(ConfigError):
        Registry().group('g').register(Broken)


def test_field_kinds(caplog):
    @dataclass
    class Everything:
        id: int
        text: str
        number: int
        amount: Decimal
        ratio: float
        flag: bool
        born: date
        payload: list
        maybe: Optional[int] = None

    with caplog.at_level(logging.WARNING, logger='Admin.registry'):
        model = Registry().group('g').register(Everything)

    kinds = {f.name: type(f) for f in model.fields}
    assert kinds == {
        'id': IntField, 'text': TextField, 'number': IntField, 'amount': FloatField, 'ratio': FloatField,
        'flag': BooleanField, 'born': TimeField, 'payload': TextField, 'maybe': IntField,
    }
    assert model.field_by_name('born').kind == 'date'
    assert 'Unknown field type' in caplog.text


def test_forward_reference():
    registry = Registry()
    group = registry.group('Library')
    book = group.register(Book)

    author_field = book.field_by_name('authorId')
    assert isinstance(author_field, ForeignKeyField)
    assert author_field.column_name == 'authorId'
    assert author_field.model is None
    assert registry.missing == {author_field: Author}

    writer = group.register(Author)
    assert author_field.model is writer
    assert not registry.missing
    registry.complete()
    assert registry.completed


def test_unresolved_foreign_key():
    registry = Registry()
    registry.group('g').register(Book)
    with pytest.raises(RegistrationError, match='Unresolved foreign keys: authorId -> Author'):
        registry.complete()


def test_backward_and_self_reference():
    registry = Registry()
    group = registry.group('g')
    writer = group.register(Author)
    book = group.register(Book)
    category = group.register(Category)

    assert book.field_by_name('authorId').model is writer
    assert category.field_by_name('parentId').model is category
    assert not registry.missing


def test_pending_key_only_bound_to_its_target():
    registry = Registry()
    group = registry.group('g')
    book = group.register(Book)
    group.register(Person)
    assert book.field_by_name('authorId').model is None
    assert len(registry.missing) == 1


def test_local_forward_references():
    @dataclass
    class Node:
        id: int
        owner: Optional['Owner'] = None

    @dataclass
    class Owner:
        id: int
        name: str = ''

    registry = Registry()
    node = registry.group('g').register(Node)
    owner = registry.groups[0].register(Owner)
    assert node.field_by_name('ownerId').model is owner


def test_name_transform():
    registry = Registry(name_transform=snake_case)
    group = registry.group('Library')
    book = group.register(Book)
    group.register(Author)
    assert book.table_name == 'book'
    assert book.field_by_name('authorId').column_name == 'author_id'
    registry.complete()
    assert [c.name for c in book.table.columns] == ['id', 'title', 'pages', 'author_id', 'published']
    fk = next(iter(book.table.c.author_id.foreign_keys))
    assert fk.target_fullname == 'author.id'


def test_admin_name_and_slug():
    @dataclass
    class Thing:
        id: int

        def admin_name(self):
            return 'Élan vital'

    registry = Registry()
    by_type = registry.group('g').register(Author)
    assert (by_type.name, by_type.slug, by_type.table_name) == ('Writer', 'writer', 'Author')

    by_instance = registry.groups[0].register(Thing(1))
    assert by_instance.name == 'Élan vital'
    assert by_instance.slug == 'elan-vital'
    assert by_instance.instance == Thing(1)


def test_duplicate_slug():
    registry = Registry()
    registry.group('g').register(Person)
    with pytest.raises(RegistrationError):
        registry.groups[0].register(Person)


def test_custom_field_from_tag(admin):
    @dataclass
    class Album:
        id: int
        cover: str = admin_field('field=file')

    model = admin.group('g').register(Album)
    assert isinstance(model.field_by_name('cover'), FileField)

    @dataclass
    class Broken:
        id: int
        cover: str = admin_field('field=nope')

    with pytest.raises(RegistrationError):
        admin.group('h').register(Broken)


def test_no_registration_after_complete():
    registry = Registry()
    registry.group('g').register(Person)
    registry.complete()
    with pytest.raises(RegistrationError):
        registry.group('late')
    with pytest.raises(RegistrationError):
        registry.complete()


def test_not_a_dataclass():
    class Plain:
        id: int

    with pytest.raises(RegistrationError):
        Registry().group('g').register(Plain)


def remote_owner(module):
    @dataclass
    class Owner:
        id: int
        __tablename__ = f'owner_{module}'
        admin_name = staticmethod(lambda: f'Owner {module}')

    Owner.__module__ = module
    return Owner


@dataclass
class Remote:
    id: int


def test_string_annotations_resolve_in_module(caplog):
    @dataclass
    class Node:
        id: int
        owner: Optional['Owner'] = None
        token: 'UUID' = None

    @dataclass
    class Owner:
        id: int

    registry = Registry()
    with caplog.at_level(logging.WARNING, logger='Admin.registry'):
        node = registry.group('g').register(Node)
    assert isinstance(node.field_by_name('token'), TextField)
    assert 'tokenId' not in node.field_names
    assert 'Unknown field type' in caplog.text

    owner = registry.groups[0].register(Owner)
    assert node.field_by_name('ownerId').model is owner
    registry.complete()


def test_same_name_in_another_module():
    @dataclass
    class Node:
        id: int
        owner: Optional['Owner'] = None

    @dataclass
    class Owner:
        id: int

    registry = Registry()
    group = registry.group('g')
    group.register(remote_owner('elsewhere'))
    node = group.register(Node)
    assert node.field_by_name('ownerId').model is None

    owner = group.register(Owner)
    assert node.field_by_name('ownerId').model is owner
    registry.complete()


def test_foreign_name_bound_on_complete():
    @dataclass
    class Node:
        id: int
        owner: Optional['Owner'] = None

    registry = Registry()
    group = registry.group('g')
    node = group.register(Node)
    owner = group.register(remote_owner('elsewhere'))
    assert node.field_by_name('ownerId').model is None
    registry.complete()
    assert node.field_by_name('ownerId').model is owner


def test_ambiguous_foreign_name():
    @dataclass
    class Node:
        id: int
        owner: Optional['Owner'] = None

    registry = Registry()
    group = registry.group('g')
    group.register(Node)
    group.register(remote_owner('a'))
    group.register(remote_owner('b'))
    with pytest.raises(RegistrationError, match='Ambiguous foreign key ownerId -> Owner: defined in a, b'):
        registry.complete()


def test_module_level_string_reference():
    @dataclass
    class Link:
        id: int
        target: 'Remote' = None

    registry = Registry()
    group = registry.group('g')
    remote = group.register(Remote)
    link = group.register(Link)
    assert link.field_by_name('targetId').model is remote
