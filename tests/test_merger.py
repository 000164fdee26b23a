import unittest
from unittest.mock import Mock

from kotodeck.core import DeckScope, LevelIndex, Merger, merge_entries
from kotodeck.errors import InconsistentEntryError
from kotodeck.models import CardKey, JlptLevel, LevelAnnotation, LoadedSources

from tests.fixtures import entry, kanji


class TestMerger(unittest.TestCase):

    def setUp(self):
        self.merger = Merger(["jitendex", "jmdict", "jlpt"])

    def test_same_headword_and_reading_merge_into_one_card(self):
        loaded = LoadedSources(entries=(
            entry("食べる", "たべる", [(["to eat"], ["v1"]), ["to live on"]], source="jitendex"),
            entry("食べる", "たべる", [(["To Eat"], ["vt"]), ["to dine"]], source="jmdict"),
        ))
        result = self.merger.merge(loaded)

        self.assertEqual(len(result.cards), 1)
        card = result.cards[0]
        self.assertEqual(card.key, CardKey("食べる", "たべる"))
        self.assertEqual([s.glosses for s in card.senses], [("to eat",), ("to live on",), ("to dine",)],
                         "duplicate glosses should collapse case-insensitively")
        self.assertEqual(card.senses[0].tags, ("v1", "vt"), "tags of a duplicate sense should be unioned")
        self.assertEqual(card.sources, ["jitendex", "jmdict"])

    def test_priority_decides_sense_order_regardless_of_input_order(self):
        loaded = LoadedSources(entries=(
            entry("犬", "いぬ", [["hound"]], source="jlpt"),
            entry("犬", "いぬ", [["dog"]], source="jitendex"),
            entry("犬", "いぬ", [["cur"]], source="other"),
        ))
        card = self.merger.merge(loaded).cards[0]
        self.assertEqual([s.glosses[0] for s in card.senses], ["dog", "hound", "cur"])

    def test_distinct_readings_make_distinct_cards(self):
        loaded = LoadedSources(entries=(
            entry("日", "ひ", [["day"]]),
            entry("日", "にち", [["Sunday"]]),
        ))
        keys = [c.key for c in self.merger.merge(loaded).cards]
        self.assertEqual(keys, [CardKey("日", "ひ"), CardKey("日", "にち")])

    def test_katakana_and_hiragana_readings_join(self):
        loaded = LoadedSources(entries=(
            entry("食べる", "タベル", [["to eat"]], source="jmdict"),
            entry("食べる", "たべる", [["to consume"]], source="jitendex"),
        ))
        self.assertEqual(len(self.merger.merge(loaded).cards), 1)

    def test_entry_without_reading_is_skipped(self):
        loaded = LoadedSources(entries=(
            entry("〇", None, [["zero"]]),
            entry("犬", "いぬ", [["dog"]]),
        ))
        result = self.merger.merge(loaded)

        self.assertEqual([c.headword for c in result.cards], ["犬"])
        self.assertEqual(len(result.skipped), 1)
        self.assertIsInstance(result.skipped[0], InconsistentEntryError)

    def test_card_key_rejects_missing_reading(self):
        with self.assertRaises(InconsistentEntryError):
            Merger.card_key(entry("〇", None, [["zero"]]))

    def test_lowest_level_and_frequency_win(self):
        loaded = LoadedSources(
            entries=(
                entry("猫", "ねこ", [["cat"]], frequency_rank=2000),
                entry("猫", "ねこ", [["puss"]], source="jitendex", frequency_rank=800),
            ),
            levels=(
                LevelAnnotation("猫", JlptLevel.N3, "ねこ"),
                LevelAnnotation("猫", JlptLevel.N5, "ねこ"),
            ),
        )
        card = self.merger.merge(loaded).cards[0]
        self.assertEqual(card.level, JlptLevel.N5)
        self.assertEqual(card.frequency_rank, 800)

    def test_headword_only_level_applies_to_every_reading(self):
        levels = LevelIndex([
            LevelAnnotation("日", JlptLevel.N4),
            LevelAnnotation("日", JlptLevel.N2, "にち"),
        ])
        self.assertEqual(levels.lookup(CardKey("日", "にち")), JlptLevel.N4)
        self.assertEqual(levels.lookup(CardKey("日", "ひ")), JlptLevel.N4)
        self.assertIsNone(levels.lookup(CardKey("月", "つき")))

    def test_kanji_breakdown_marks_unknown_characters(self):
        loaded = LoadedSources(
            entries=(entry("人々", "ひとびと", [["people"]]), entry("本人", "ほんにん", [["the person"]])),
            kanji=(kanji("人", onyomi=["ジン", "ニン"], kunyomi=["ひと"], meanings=["person"]),),
        )
        cards = {c.headword: c for c in self.merger.merge(loaded).cards}

        self.assertEqual([k.character for k in cards["人々"].kanji], ["人"], "kana and repeats are not broken down")
        breakdown = cards["本人"].kanji
        self.assertEqual([k.character for k in breakdown], ["本", "人"])
        self.assertFalse(breakdown[0].known)
        self.assertTrue(breakdown[1].known)

    def test_furigana_uses_kanji_readings(self):
        loaded = LoadedSources(
            entries=(entry("本人", "ほんにん", [["the person"]]),),
            kanji=(kanji("本", onyomi=["ホン"]), kanji("人", onyomi=["ニン"])),
        )
        self.assertEqual(self.merger.merge(loaded).cards[0].furigana, "本[ほん]人[にん]")

    def test_merge_is_repeatable(self):
        loaded = LoadedSources(entries=(
            entry("犬", "いぬ", [["dog"]]),
            entry("猫", "ねこ", [["cat"]], source="jitendex"),
        ))
        first = merge_entries(loaded, ["jitendex", "jmdict"]).cards
        second = merge_entries(loaded, ["jitendex", "jmdict"]).cards
        self.assertEqual(
            [(c.key, c.senses, c.furigana) for c in first],
            [(c.key, c.senses, c.furigana) for c in second],
        )

    def test_empty_input(self):
        result = self.merger.merge(LoadedSources())
        self.assertEqual(result.cards, [])
        self.assertEqual(result.skipped, [])


class TestDeckScope(unittest.TestCase):

    def merge(self, entries, levels=(), **scope):
        merger = Merger(["jitendex", "jmdict", "jlpt"], DeckScope(**scope))
        return merger.merge(LoadedSources(entries=tuple(entries), levels=tuple(levels)))

    def test_level_limit_keeps_compounds_up_to_their_own_limit(self):
        entries = [
            entry("食べる", "たべる", [["to eat"]]),
            entry("経済", "けいざい", [["economy"]]),
            entry("経済学", "けいざいがく", [(["economics"], ["n", "comp"])]),
            entry("概念", "がいねん", [(["concept"], ["n", "comp"])]),
        ]
        levels = [
            LevelAnnotation("食べる", JlptLevel.N5),
            LevelAnnotation("経済", JlptLevel.N2),
            LevelAnnotation("経済学", JlptLevel.N2),
            LevelAnnotation("概念", JlptLevel.N1),
        ]

        result = self.merge(entries, levels, max_level=JlptLevel.N3, compound_level=JlptLevel.N2)

        self.assertEqual([c.headword for c in result.cards], ["食べる", "経済学"])
        self.assertEqual(result.out_of_scope, [CardKey("経済", "けいざい"), CardKey("概念", "がいねん")])

    def test_unleveled_words(self):
        entries = [entry("犬", "いぬ", [["dog"]])]
        self.assertEqual(len(self.merge(entries).cards), 1)
        self.assertEqual(self.merge(entries, include_unleveled=False).cards, [])

    def test_numerals_are_excluded(self):
        entries = [
            entry("５日", "いつか", [["fifth day"]]),
            entry("〇点", "れいてん", [["zero points"]]),
            entry("日", "ひ", [["day"]]),
        ]
        result = self.merge(entries)

        self.assertEqual([c.headword for c in result.cards], ["日"])
        self.assertEqual(result.out_of_scope, [CardKey("5日", "いつか"), CardKey("〇点", "れいてん")])
        self.assertEqual(len(self.merge(entries, exclude_numerals=False).cards), 3)

    def test_form_senses_are_dropped(self):
        entries = [
            entry("食べる", "たべる", [["to eat"], (["食べた", "食べない"], ["forms"])]),
            entry("喰べる", "たべる", [(["食べる"], ["forms"])]),
        ]
        result = self.merge(entries)

        self.assertEqual([c.headword for c in result.cards], ["食べる"])
        self.assertEqual([s.glosses for s in result.cards[0].senses], [("to eat",)])
        self.assertEqual(result.out_of_scope, [CardKey("喰べる", "たべる")], "an entry of forms only has no meaning")

    def test_scope_from_settings(self):
        values = {"MAX_LEVEL": "n3", "COMPOUND_LEVEL": "bogus", "INCLUDE_UNLEVELED": False, "EXCLUDE_NUMERALS": True}
        settings = Mock(get=values.get)

        scope = DeckScope.from_config(settings)

        self.assertEqual(scope.max_level, JlptLevel.N3)
        self.assertEqual(scope.compound_level, JlptLevel.N1, "unparseable levels fall back to N1")
        self.assertFalse(scope.include_unleveled)


if __name__ == '__main__':
    unittest.main()
