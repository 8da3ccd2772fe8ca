import pytest

from qrservice.errors import ValidationError
from qrservice.services.style import Style, validate_content, validate_name


def test_defaults_when_customization_missing():
    assert Style.from_payload(None) == Style(300, '#000000', '#FFFFFF', 'M', 4)


def test_colors_are_normalized():
    style = Style.from_payload({'foregroundColor': 'ff0000', 'backgroundColor': '#abcdef', 'errorCorrectionLevel': 'h'})
    assert style.foreground_color == '#FF0000'
    assert style.background_color == '#ABCDEF'
    assert style.error_correction_level == 'H'


def test_bounds_are_inclusive():
    style = Style.from_payload({'size': 100, 'margin': 20})
    assert (style.size, style.margin) == (100, 20)
    assert Style.from_payload({'size': 1000, 'margin': 0}).size == 1000


@pytest.mark.parametrize('payload', [
    {'size': 99},
    {'size': 1001},
    {'size': 'big'},
    {'size': True},
    {'margin': -1},
    {'margin': 21},
    {'foregroundColor': '#FFF'},
    {'backgroundColor': 'red'},
    {'errorCorrectionLevel': 'X'},
    'not-an-object',
])
def test_out_of_range_style_is_rejected(payload):
    with pytest.raises(ValidationError):
        Style.from_payload(payload)


def test_content_length_boundary():
    longest = 'https://a.test/' + 'a' * (2048 - len('https://a.test/'))
    assert validate_content(longest) == longest
    with pytest.raises(ValidationError):
        validate_content(longest + 'a')


@pytest.mark.parametrize('value', [
    'javascript:alert(1)',
    'JavaScript:alert(1)',
    'data:text/html;base64,PHNjcmlwdD4=',
    'ftp://files.test/a',
    'https://',
    'a.test/menu',
    'https://a.test/\njavascript:alert(1)',
    'https://a.test/two words',
])
def test_content_must_be_web_url(value):
    with pytest.raises(ValidationError):
        validate_content(value)


def test_http_and_https_are_accepted():
    assert validate_content('http://a.test') == 'http://a.test'
    assert validate_content('HTTPS://A.test/menu?x=1') == 'HTTPS://A.test/menu?x=1'


@pytest.mark.parametrize('value', [None, '', '   ', 42])
def test_content_required(value):
    with pytest.raises(ValidationError):
        validate_content(value)


def test_name_falls_back_to_content():
    assert validate_name(None, 'https://a.test') == 'https://a.test'
    assert validate_name('  Menu  ', 'https://a.test') == 'Menu'
