# =============================================================================
# Unit Tests — Table Detection
# =============================================================================
#
# Detection rules, region expansion and merging. Pure functions over
# strings: no API keys, databases or network calls needed.
# =============================================================================

from banking_rag.services.table_detection import (
    DEFAULT_RULES,
    CaptionRule,
    DelimitedRowRule,
    Seed,
    SeparatorRowRule,
    TableRegion,
    expand_region,
    find_table_regions,
    is_table_line,
    merge_regions,
)

RATE_TABLE = (
    "Table 2.1\n"
    "| Rate | Term |\n"
    "|------|------|\n"
    "| 3.5% | 30yr |"
)


class TestDetectionRules:
    """Tests for the individual rule objects."""

    def test_caption_rules_match_banking_labels(self):
        text = "See Table 3.2, Schedule B and Exhibit 4 for details."
        headers = [
            seed.header
            for rule in DEFAULT_RULES
            if isinstance(rule, CaptionRule)
            for seed in rule.match(text)
        ]
        assert headers == ["Table 3.2", "Schedule B", "Exhibit 4"]

    def test_caption_seeds_are_flagged(self):
        seeds = CaptionRule(r"\bExhibit \d+\b").match("Exhibit 7")
        assert seeds == [Seed(0, 9, "Exhibit 7", True)]

    def test_caption_requires_word_boundary(self):
        rule = CaptionRule(r"\bSchedule [A-Z]+\b")
        assert rule.match("Reschedule ABC payments") == []

    def test_table_caption_needs_dotted_number(self):
        rule = CaptionRule(r"\bTable \d+\.\d+")
        assert rule.match("Table 2 shows") == []

    def test_delimited_row_rule(self):
        seeds = DelimitedRowRule().match("intro\n| a | b |\noutro")
        assert len(seeds) == 1
        assert seeds[0].header == "| a | b |"
        assert not seeds[0].is_caption

    def test_separator_row_rule_matches_whole_lines_only(self):
        rule = SeparatorRowRule()
        assert len(rule.match("text\n|---|:---:|\nmore")) == 1
        assert rule.match("well-known fact") == []


class TestIsTableLine:
    def test_pipe_delimited_line(self):
        assert is_table_line("| Prime | 8.50% |")

    def test_separator_line(self):
        assert is_table_line("  |:---|---:|  ")
        assert is_table_line("----------")

    def test_prose_and_blank_lines(self):
        assert not is_table_line("The prime rate is 8.50%.")
        assert not is_table_line("")
        assert not is_table_line("   ")

    def test_prose_with_two_pipes_counts_as_table(self):
        # Purely syntactic: pipe-containing prose is treated as tabular
        assert is_table_line("Choose A | B | C when applying")


class TestExpandRegion:
    def test_caption_expands_over_rows_below(self):
        text = "Intro.\n\n" + RATE_TABLE + "\n\nClosing."
        seed = CaptionRule(r"\bTable \d+\.\d+").match(text)[0]
        region = expand_region(text, seed)
        assert text[region.start:region.end] == RATE_TABLE
        assert region.headers == ("Table 2.1",)

    def test_row_seed_expands_backward_and_forward(self):
        rows = "| a | b |\n|---|---|\n| 1 | 2 |"
        text = "before\n" + rows + "\nafter"
        middle = text.index("|---|")
        region = expand_region(text, Seed(middle, middle + 9, "|---|---|"))
        assert text[region.start:region.end] == rows

    def test_expansion_reaches_start_of_text(self):
        text = "| a | b |\n| 1 | 2 |\nprose"
        last_row = text.index("| 1")
        region = expand_region(text, Seed(last_row, last_row + 9, "| 1 | 2 |"))
        assert region.start == 0
        assert text[region.start:region.end] == "| a | b |\n| 1 | 2 |"

    def test_expansion_reaches_end_of_text(self):
        text = "prose\n| a | b |\n| 1 | 2 |"
        region = expand_region(text, Seed(6, 15, "| a | b |"))
        assert region.end == len(text)


class TestMergeRegions:
    def test_regions_within_gap_merge(self):
        merged = merge_regions(
            [TableRegion(0, 100, ("Table 1.1",)), TableRegion(150, 200, ("Schedule A",))],
            max_gap=50,
        )
        assert merged == (TableRegion(0, 200, ("Table 1.1", "Schedule A")),)
        assert merged[0].header == "Table 1.1, Schedule A"

    def test_regions_beyond_gap_stay_separate(self):
        regions = [TableRegion(0, 100, ("A",)), TableRegion(151, 200, ("B",))]
        assert merge_regions(regions, max_gap=50) == tuple(regions)

    def test_merge_sorts_and_does_not_mutate_input(self):
        regions = [TableRegion(300, 400, ("B",)), TableRegion(0, 100, ("A",))]
        original = list(regions)
        merged = merge_regions(regions)
        assert regions == original
        assert [r.start for r in merged] == [0, 300]

    def test_overlapping_regions_keep_outer_end(self):
        merged = merge_regions([TableRegion(0, 100, ("A",)), TableRegion(20, 60, ("A",))])
        assert merged == (TableRegion(0, 100, ("A",)),)


class TestFindTableRegions:
    def test_no_signals_returns_empty(self):
        assert find_table_regions("Plain prose about mortgage rates.") == ()

    def test_caption_and_rows_form_one_region(self):
        text = "Intro paragraph.\n\n" + RATE_TABLE + "\n\nClosing paragraph."
        regions = find_table_regions(text)
        assert len(regions) == 1
        assert regions[0].header == "Table 2.1"
        assert text[regions[0].start:regions[0].end] == RATE_TABLE

    def test_row_seeds_inside_region_do_not_extend_header(self):
        regions = find_table_regions(RATE_TABLE)
        assert regions[0].headers == ("Table 2.1",)

    def test_nearby_tables_merge_with_combined_header(self):
        text = (
            "Table 1.1\n| a | b |\n\n"
            "Some note here.\n\n"
            "Schedule A\n| c | d |"
        )
        regions = find_table_regions(text)
        assert len(regions) == 1
        assert regions[0].header == "Table 1.1, Schedule A"

    def test_distant_tables_stay_separate(self):
        text = (
            "Table 1.1\n| a | b |\n\n"
            + "Long explanatory prose. " * 10
            + "\n\nSchedule A\n| c | d |"
        )
        regions = find_table_regions(text)
        assert [r.header for r in regions] == ["Table 1.1", "Schedule A"]

    def test_custom_rules_replace_defaults(self):
        rules = [CaptionRule(r"\bAppendix [IVX]+\b")]
        text = "Appendix IV\n| fee | amount |"
        regions = find_table_regions(text, rules=rules)
        assert regions[0].header == "Appendix IV"
        assert find_table_regions("Table 1.1", rules=rules) == ()
