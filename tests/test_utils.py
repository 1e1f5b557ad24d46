from utils import single_card_filename, unique_name


def test_single_card_filename_basic():
    assert single_card_filename("E1", "Ann Lee") == "E1_Ann_Lee.pdf"


def test_single_card_filename_collapses_whitespace():
    assert single_card_filename("E1", "Mary   Ann\tLee") == "E1_Mary_Ann_Lee.pdf"


def test_single_card_filename_strips_weird_chars():
    assert single_card_filename("../E1", "  A/B:C*D?  ") == "E1_ABCD.pdf"


def test_single_card_filename_empty_fallback():
    assert single_card_filename("", "") == "card.pdf"
    assert single_card_filename("E7", "   ") == "E7.pdf"


def test_unique_name_adds_suffixes():
    taken = set()
    assert unique_name("E1_Ann.pdf", taken) == "E1_Ann.pdf"
    assert unique_name("E1_Ann.pdf", taken) == "E1_Ann_2.pdf"
    assert unique_name("E1_Ann.pdf", taken) == "E1_Ann_3.pdf"
    assert taken == {"E1_Ann.pdf", "E1_Ann_2.pdf", "E1_Ann_3.pdf"}


def test_single_card_filename_keeps_non_ascii_letters():
    assert single_card_filename("E1", "José García") == "E1_José_García.pdf"
    assert single_card_filename("E2", "李 明") == "E2_李_明.pdf"


def test_single_card_filename_non_breaking_space():
    assert single_card_filename("E3", "Ann\u00a0Lee") == "E3_Ann_Lee.pdf"
    assert single_card_filename("E4", "Ann / Lee") == "E4_Ann_Lee.pdf"
