import random
import unittest

from kotodeck.core import rank_cards, verify_dense_ranks
from kotodeck.models import JlptLevel

from tests.fixtures import card


def headwords(cards):
    return [c.headword for c in cards]


class TestRanker(unittest.TestCase):

    def test_level_orders_before_frequency(self):
        cards = [
            card("意見", "いけん", JlptLevel.N4, frequency=10),
            card("犬", "いぬ", JlptLevel.N5, frequency=5000),
            card("概念", "がいねん", None, frequency=1),
        ]
        self.assertEqual(headwords(rank_cards(cards)), ["犬", "意見", "概念"],
                         "cards without a level should come last")

    def test_frequency_orders_within_a_level(self):
        cards = [
            card("猫", "ねこ", JlptLevel.N5),
            card("犬", "いぬ", JlptLevel.N5, frequency=900),
            card("水", "みず", JlptLevel.N5, frequency=100),
        ]
        self.assertEqual(headwords(rank_cards(cards)), ["水", "犬", "猫"])

    def test_component_kanji_come_first(self):
        cards = [card("一つ", "ひとつ", JlptLevel.N5), card("一", "いち", JlptLevel.N5)]
        self.assertEqual(headwords(rank_cards(cards)), ["一", "一つ"])

    def test_fewer_new_kanji_first(self):
        cards = [
            card("人", "ひと", JlptLevel.N5, frequency=1),
            card("会社", "かいしゃ", JlptLevel.N5, frequency=2),
            card("本人", "ほんにん", JlptLevel.N5, frequency=2),
        ]
        self.assertEqual(headwords(rank_cards(cards)), ["人", "本人", "会社"],
                         "本人 only introduces 本 once 人 has been seen")

    def test_new_kanji_count_updates_as_cards_are_placed(self):
        cards = [
            card("学生", "がくせい", JlptLevel.N5),
            card("学校", "がっこう", JlptLevel.N5),
            card("先生", "せんせい", JlptLevel.N5),
            card("生", "なま", JlptLevel.N5),
        ]
        ordered = headwords(rank_cards(cards))
        self.assertEqual(ordered[0], "生")
        self.assertEqual(ordered[1], "先生", "ties on new kanji fall back to headword order")

    def test_order_is_deterministic(self):
        cards = [
            card("人", "ひと", JlptLevel.N5, frequency=1),
            card("本人", "ほんにん", JlptLevel.N5, frequency=2),
            card("会社", "かいしゃ", JlptLevel.N5, frequency=2),
            card("日", "ひ", JlptLevel.N5, frequency=2),
            card("日", "にち", JlptLevel.N5, frequency=2),
            card("社会", "しゃかい", JlptLevel.N4),
            card("テレビ", "てれび", None),
        ]
        expected = headwords(rank_cards(list(cards)))
        for seed in range(5):
            shuffled = list(cards)
            random.Random(seed).shuffle(shuffled)
            self.assertEqual(headwords(rank_cards(shuffled)), expected, f"order changed for seed {seed}")

    def test_ranks_are_dense(self):
        cards = [card(h, r, JlptLevel.N5) for h, r in (("犬", "いぬ"), ("猫", "ねこ"), ("鳥", "とり"))]
        ordered = rank_cards(cards)
        self.assertEqual([c.rank for c in ordered], [0, 1, 2])
        self.assertTrue(verify_dense_ranks(ordered))

    def test_only_rank_is_changed(self):
        item = card("犬", "いぬ", JlptLevel.N5, frequency=3)
        before = (item.key, item.senses, item.level, item.frequency_rank, item.furigana)
        rank_cards([item])
        self.assertEqual((item.key, item.senses, item.level, item.frequency_rank, item.furigana), before)

    def test_verify_dense_ranks_rejects_gaps(self):
        cards = [card("犬", "いぬ"), card("猫", "ねこ")]
        cards[0].rank = 0
        cards[1].rank = 2
        self.assertFalse(verify_dense_ranks(cards))

    def test_empty_input(self):
        self.assertEqual(rank_cards([]), [])


if __name__ == '__main__':
    unittest.main()
