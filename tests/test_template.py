"""Tests for rosterbot.core.template — rendering and pasted-list parsing."""

from rosterbot.core.template import EMPTY_SLOT, WAITING_HEADER, parse_roster_text, render_roster
from rosterbot.data.models import Participant


class TestRenderRoster:
    def test_header_and_times(self, roster):
        text = render_roster(roster, "Saturday Football")
        lines = text.splitlines()
        assert lines[0] == "Saturday Football 24/10 ⚽🔥"
        assert "Warmup: 20:30 ⏰" in lines
        assert "Start: 21:00 🕘" in lines
        assert "Commitment until: 20:15 🤝" in lines

    def test_all_slots_numbered(self, roster):
        text = render_roster(roster, "Game")
        for n in range(1, 25):
            assert f"{n}. {EMPTY_SLOT}" in text

    def test_role_tags(self, roster):
        roster.slots[0] = Participant("Dana Levi", "u1", is_equipment_duty=True)
        roster.slots[23] = Participant("Yossi Cohen", "u2", is_laundry_duty=True)
        text = render_roster(roster, "Game")
        assert "1. Dana Levi (equipment)" in text
        assert "24. Yossi Cohen (laundry)" in text

    def test_waiting_section_only_when_needed(self, roster):
        assert WAITING_HEADER not in render_roster(roster, "Game")
        roster.waiting_list.append(Participant("Avi Bar", "u3"))
        text = render_roster(roster, "Game")
        assert WAITING_HEADER in text
        assert text.index(WAITING_HEADER) < text.index("Avi Bar")

    def test_deterministic(self, roster):
        roster.slots[5] = Participant("Dana Levi", "u1")
        assert render_roster(roster, "Game") == render_roster(roster, "Game")

    def test_defaults_to_configured_event_name(self, roster):
        assert render_roster(roster).startswith("Saturday Football")


class TestParseRosterText:
    def test_numbered_lines_map_to_slots(self):
        parsed = parse_roster_text("1. Dana Levi\n3. Yossi Cohen\n")
        assert parsed.slots[0].name == "Dana Levi"
        assert parsed.slots[1] is None
        assert parsed.slots[2].name == "Yossi Cohen"
        assert len(parsed.slots) == 24

    def test_placeholders_stay_empty(self):
        parsed = parse_roster_text("1. ___\n2.\n3. Dana Levi")
        assert parsed.slots[0] is None
        assert parsed.slots[1] is None
        assert parsed.slots[2].name == "Dana Levi"

    def test_role_markers(self):
        parsed = parse_roster_text("1. Dana Levi (equipment)\n24. Yossi Cohen (כביסה)")
        assert parsed.slots[0].name == "Dana Levi"
        assert parsed.slots[0].is_equipment_duty
        assert parsed.slots[23].is_laundry_duty

    def test_waiting_section(self):
        text = "1. Dana Levi\n\n--- Waiting list ---\nAvi Bar\nNoa Katz\n"
        parsed = parse_roster_text(text)
        assert [p.name for p in parsed.waiting_list] == ["Avi Bar", "Noa Katz"]

    def test_hebrew_waiting_heading(self):
        parsed = parse_roster_text("1. Dana Levi\nרשימת המתנה:\nAvi Bar")
        assert [p.name for p in parsed.waiting_list] == ["Avi Bar"]

    def test_rendered_roster_parses_back(self, roster):
        roster.slots[0] = Participant("Dana Levi", is_equipment_duty=True)
        roster.slots[23] = Participant("Yossi Cohen", is_laundry_duty=True)
        roster.waiting_list = [Participant("Avi Bar")]

        parsed = parse_roster_text(render_roster(roster, "Game"))

        assert parsed.slots == roster.slots
        assert parsed.waiting_list == roster.waiting_list

    def test_nothing_recognised(self):
        assert parse_roster_text("hello everyone") is None
        assert parse_roster_text("1. ___\n2. ___") is None

    def test_out_of_range_numbers_ignored(self):
        parsed = parse_roster_text("1. Dana Levi\n30. Yossi Cohen")
        assert parsed.slots[0].name == "Dana Levi"
        assert all(p is None for p in parsed.slots[1:])
