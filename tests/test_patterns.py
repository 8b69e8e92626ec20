"""
Тесты текстовых утилит: письменность, плейсхолдеры, HTML-теги,
похожесть, языковые коды и генерация ключей.
"""

import hashlib

import pytest

from i18n_pilot.patterns import (
    clean_text,
    extract_html_tags,
    extract_placeholders,
    extract_runs,
    extract_script_text,
    find_most_similar,
    generate_hash_key,
    generate_key,
    has_script,
    is_valid_code,
    levenshtein,
    marker_prefix,
    normalize_code,
    protect_placeholders,
    restore_placeholders,
    similarity,
    validate_html_tags,
    validate_placeholders,
)


class TestScriptDetection:
    """Поиск текста на целевой письменности."""

    def test_han_detected(self) -> None:
        assert has_script("保存成功") is True
        assert has_script("Save 成功") is True

    def test_ascii_and_empty(self) -> None:
        assert has_script("hello") is False
        assert has_script("") is False

    def test_cyrillic_script(self) -> None:
        assert has_script("Привет", "cyrillic") is True
        assert has_script("你好", "cyrillic") is False

    def test_unknown_script_raises(self) -> None:
        with pytest.raises(ValueError):
            has_script("text", "klingon")

    def test_runs_keep_script_punctuation(self) -> None:
        assert extract_runs("点击保存，然后退出 ok 保存") == ["点击保存，然后退出", "保存"]

    def test_runs_are_distinct(self) -> None:
        assert extract_runs("保存 and 保存") == ["保存"]

    def test_punctuation_only_is_not_text(self) -> None:
        assert extract_runs("，。") == []

    def test_extract_script_text_trims(self) -> None:
        assert extract_script_text("  你好  ") == "你好"
        assert extract_script_text("hello") is None
        assert extract_script_text("") is None

    def test_clean_text(self) -> None:
        assert clean_text("  a \n\t b  ") == "a b"
        assert clean_text("") == ""


class TestSimilarity:
    """Расстояние Левенштейна и похожесть."""

    def test_levenshtein(self) -> None:
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_similarity_bounds(self) -> None:
        assert similarity("abc", "abc") == 1.0
        assert similarity("", "") == 1.0
        assert similarity("a", "") == 0.0
        assert similarity("保存成功", "保存成功了") == pytest.approx(0.8)

    @pytest.mark.parametrize("a, b", [
        ("保存成功", "保存成功了"),
        ("kitten", "sitting"),
        ("", "abc"),
        ("删除", "保存"),
    ])
    def test_similarity_symmetric(self, a: str, b: str) -> None:
        assert similarity(a, b) == similarity(b, a)

    def test_most_similar_strictly_above_threshold(self) -> None:
        best = find_most_similar("保存成功", ["保存失败", "保存成功了", "删除"], threshold=0.5)
        assert best is not None
        assert best[0] == "保存成功了"
        assert best[1] == pytest.approx(0.8)

    def test_most_similar_none(self) -> None:
        assert find_most_similar("abc", ["xyz"]) is None
        assert find_most_similar("abc", []) is None


class TestPlaceholders:
    """Плейсхолдеры: поиск, сравнение, маскирование."""

    def test_type_is_first_family_list_aggregates_all(self) -> None:
        result = extract_placeholders("你好 {name}，共 %d 条")
        assert result.type == "curly"
        assert result.placeholders == ["{name}", "%d"]

    def test_no_placeholders(self) -> None:
        result = extract_placeholders("没有")
        assert result.type == "none"
        assert result.placeholders == []
        assert extract_placeholders("").placeholders == []

    def test_colon_family(self) -> None:
        result = extract_placeholders("路径 :id")
        assert result.type == "colon"
        assert result.placeholders == [":id"]

    def test_duplicates_collapsed(self) -> None:
        assert extract_placeholders("{a} 和 {a}").placeholders == ["{a}"]

    def test_validate_missing_and_extra(self) -> None:
        result = validate_placeholders("你好 {name}", "Hello {user}")
        assert result.valid is False
        assert result.missing == ["{name}"]
        assert result.extra == ["{user}"]

    def test_validate_ok(self) -> None:
        result = validate_placeholders("共 %d 条", "%d items")
        assert result.valid is True

    def test_validate_reports_dropped_placeholder(self) -> None:
        result = validate_placeholders("你好，{name}！今天是{date}", "Hello, {name}!")
        assert result.valid is False
        assert result.missing == ["{date}"]
        assert result.extra == []

    def test_protect_numbers_markers_left_to_right(self) -> None:
        protected = protect_placeholders("欢迎 {name}，你有 %d 条消息")
        assert protected.masked == "欢迎 __PH_0__，你有 __PH_1__ 条消息"
        assert protected.placeholders == {"__PH_0__": "{name}", "__PH_1__": "%d"}

    def test_protect_every_occurrence(self) -> None:
        protected = protect_placeholders("{a} 和 {a}")
        assert protected.masked == "__PH_0__ 和 __PH_1__"
        assert protected.placeholders == {"__PH_0__": "{a}", "__PH_1__": "{a}"}

    def test_protect_prefers_longer_overlap(self) -> None:
        protected = protect_placeholders("${count} 个")
        assert protected.masked == "__PH_0__ 个"
        assert protected.placeholders == {"__PH_0__": "${count}"}

    def test_restore(self) -> None:
        text = "欢迎 {name}，你有 %d 条消息"
        protected = protect_placeholders(text)
        assert restore_placeholders(protected.masked, protected.placeholders) == text

    def test_restore_after_translation(self) -> None:
        protected = protect_placeholders("你好 {name}")
        translated = "Hello __PH_0__!"
        assert restore_placeholders(translated, protected.placeholders) == "Hello {name}!"

    def test_protect_plain_text(self) -> None:
        protected = protect_placeholders("纯文本")
        assert protected.masked == "纯文本"
        assert protected.placeholders == {}

    def test_marker_text_in_source_survives(self) -> None:
        text = "见 __PH_0__ 与 {name}"
        protected = protect_placeholders(text)
        assert protected.masked == "见 __PH_0__ 与 __PH1_0__"
        assert protected.placeholders == {"__PH1_0__": "{name}"}
        assert restore_placeholders(protected.masked, protected.placeholders) == text

    def test_marker_prefix_skips_every_taken_prefix(self) -> None:
        assert marker_prefix("纯文本") == "__PH_"
        assert marker_prefix("__PH_ 和 __PH1_") == "__PH2_"


class TestHtmlTags:
    """HTML-теги сравниваются как мультимножества."""

    def test_extract_tags(self) -> None:
        assert extract_html_tags('<a href="x">链接</a>') == ['<a href="x">', "</a>"]
        assert extract_html_tags("") == []

    def test_missing_closing_tag(self) -> None:
        result = validate_html_tags("<b>粗体</b>", "<b>bold")
        assert result.valid is False
        assert result.missing == ["</b>"]
        assert result.extra == []

    def test_counts_repeated_tags(self) -> None:
        result = validate_html_tags("<br>一<br>二", "<br>one two")
        assert result.missing == ["<br>"]

    def test_extra_tag(self) -> None:
        result = validate_html_tags("粗体", "<i>bold</i>")
        assert result.extra == ["<i>", "</i>"]


class TestLanguageCodes:
    def test_normalize(self) -> None:
        assert normalize_code("zh-cn") == "zh-CN"
        assert normalize_code("EN") == "en"
        assert normalize_code("chinese") == "zh-CN"

    def test_valid(self) -> None:
        assert is_valid_code("zh-CN") is True
        assert is_valid_code("xx") is False


class TestKeyGeneration:
    """Генерация ключей."""

    def test_hash_key(self) -> None:
        expected = hashlib.md5("保存".encode("utf-8")).hexdigest()[:8]
        assert generate_hash_key("保存") == expected
        assert generate_hash_key("保存", "user") == f"user.{expected}"

    def test_literal_key(self) -> None:
        assert generate_key("Save  file now") == "Save_file_now"
        assert generate_key("保存 文件") == "保存_文件"
        assert generate_key("保存", "user") == "user.保存"

    def test_literal_key_capped(self) -> None:
        assert len(generate_key("这是一个非常非常非常非常非常非常非常长的句子啊")) == 20

    def test_literal_key_falls_back_to_hash(self) -> None:
        assert generate_key("!!!") == generate_hash_key("!!!")
