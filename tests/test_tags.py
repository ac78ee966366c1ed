import pytest

from alchemy_admin.exceptions import ConfigError, TagParseError
from alchemy_admin.tags import FieldOptions, parse_tag


def test_parse_tag():
    assert parse_tag(None) == {}
    assert parse_tag('') == {}
    assert parse_tag('-') == {'-': None}
    assert parse_tag('search, list ,label=Full name,width=6') == {
        'search': None, 'list': None, 'label': 'Full name', 'width': '6'}
    assert parse_tag('default=') == {'default': ''}
    assert parse_tag('unknown=1,other') == {'unknown': '1', 'other': None}


@pytest.mark.parametrize('tag', ['search,,list', '=6', 'list,list', '-,search', 'label=a,-'])
def test_parse_tag_malformed(tag):
    with pytest.raises(TagParseError):
        parse_tag(tag)


def test_field_options():
    options = FieldOptions.from_tag('search,label=Name,default=Bob,width=4,format=%d/%m')
    assert options.search
    assert not options.list
    assert options.label == 'Name'
    assert options.default == 'Bob'
    assert options.width == 4
    assert options.extra == {'format': '%d/%m'}
    assert FieldOptions.from_tag('-').skip
    assert FieldOptions.from_tag('list=false').list is False
    assert FieldOptions.from_tag(None) == FieldOptions()


@pytest.mark.parametrize('tag', ['width=abc', 'width=0', 'width=13', 'label', 'field', 'list=maybe'])
def test_field_options_invalid(tag):
    with pytest.raises(ConfigError):
        FieldOptions.from_tag(tag)
