from core.annotations import parse_annotation, parse_optional_annotation


def test_absent_comment_yields_empty_annotation():
    assert parse_annotation(None).is_empty
    assert parse_annotation("   ").is_empty
    assert parse_optional_annotation(None) is None
    assert parse_optional_annotation("") is None


def test_non_string_input_never_raises():
    assert parse_annotation(42).is_empty


def test_known_tags_map_to_named_fields():
    ann = parse_annotation('Customer e-mail address @type:Email @deprecated:"use contact_email"')
    assert ann.description == "Customer e-mail address"
    assert ann.type_override == "Email"
    assert ann.deprecated == "use contact_email"
    assert ann.fixed is False
    assert ann.extra_tags == {}


def test_flags_and_unknown_tags():
    ann = parse_annotation("@fixed @owner:billing Internal ledger")
    assert ann.fixed is True
    assert ann.extra_tags == {"owner": "billing"}
    assert ann.description == "Internal ledger"
    assert ann.tags == {"fixed": "", "owner": "billing"}


def test_email_addresses_are_not_tags():
    ann = parse_annotation("Contact admin@example.com for access")
    assert ann.tags == {}
    assert ann.description == "Contact admin@example.com for access"


def test_multiline_description_is_normalized():
    ann = parse_annotation("First   line\n\n  second line @deprecated\n")
    assert ann.description == "First line\nsecond line"
    assert ann.deprecated == ""


def test_first_occurrence_of_a_tag_wins():
    ann = parse_annotation("@owner:a @owner:b")
    assert ann.extra_tags == {"owner": "a"}
    assert ann.description is None
