import json
import os
import tempfile
import unittest
import zipfile
from pathlib import Path

from kotodeck.errors import MalformedSourceError
from kotodeck.loaders import (
    DictionaryLoader,
    flatten_glossary,
    read_archive,
    read_example_corpus,
    read_jlpt_lists,
    read_jmdict,
    source_id,
)
from kotodeck.loaders.yomitan import convert_kanji, convert_levels, convert_terms
from kotodeck.models import JlptLevel

from tests.fixtures import write_yomitan_zip

EXAMPLE_GLOSSARY = {
    "type": "structured-content",
    "content": [
        {"tag": "ul", "data": {"content": "glossary"}, "content": [{"tag": "li", "content": "to live on"}]},
        {
            "tag": "div",
            "data": {"content": "example-sentence"},
            "content": [
                {
                    "tag": "div",
                    "data": {"content": "example-sentence-a"},
                    "content": [
                        {"tag": "ruby", "content": ["肉", {"tag": "rt", "content": "にく"}]},
                        "を",
                        {"tag": "ruby", "content": ["食", {"tag": "rt", "content": "た"}]},
                        "べる。",
                    ],
                },
                {"tag": "div", "data": {"content": "example-sentence-b"}, "content": "I eat meat."},
            ],
        },
    ],
}

TERMS = [
    ["食べる", "たべる", "v1", "v1", 10, ["to eat"], 1358280, "news1k"],
    ["食べる", "たべる", "", "", 5, [EXAMPLE_GLOSSARY], 1358280, ""],
]

METAS = [
    ["食べる", "freq", {"reading": "たべる", "frequency": 300}],
    ["食べる", "freq", {"value": 5, "displayValue": "N5"}],
    ["食べる", "pitch", {"reading": "たべる", "pitches": []}],
]

KANJI_ROWS = [
    ["食", "ショク ジキ", "く.う た.べる", "jouyou", ["eat", "food"], {"strokes": "9"}],
]


class TempDirTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()


class TestYomitan(TempDirTestCase):

    def setUp(self):
        super().setUp()
        self.archive = Path(write_yomitan_zip(
            str(self.tmp / "jitendex.zip"), TERMS, METAS, KANJI_ROWS, title="Jitendex"
        ))

    def test_read_archive(self):
        banks = read_archive(self.archive)
        self.assertEqual(banks.title, "Jitendex")
        self.assertEqual(len(banks.terms), 2)
        self.assertEqual(len(banks.frequencies), 2, "non-freq meta rows should be ignored")
        self.assertEqual(banks.kanji[0].strokes, 9)

    def test_rows_group_into_one_entry(self):
        entries, _ = convert_terms(read_archive(self.archive), "jitendex")

        self.assertEqual(len(entries), 1)
        entry = entries[0]
        self.assertEqual(entry.headword, "食べる")
        self.assertEqual(entry.readings, ("たべる",))
        self.assertEqual([s.glosses for s in entry.senses], [("to eat",), ("to live on",)],
                         "senses should be ordered by row score")
        self.assertEqual(entry.senses[0].tags, ("v1",))
        self.assertEqual(entry.frequency_rank, 300, "the lowest of tag and meta ranks should win")
        self.assertEqual(entry.sequence, 1358280)

    def test_embedded_examples_are_harvested(self):
        _, examples = convert_terms(read_archive(self.archive), "jitendex")

        self.assertEqual(len(examples), 1)
        self.assertEqual(examples[0].text, "肉を食べる。")
        self.assertEqual(examples[0].translation, "I eat meat.")
        self.assertEqual(examples[0].transcription, "にくをたべる。")
        self.assertEqual(examples[0].source, "jitendex")

    def test_levels_and_kanji(self):
        banks = read_archive(self.archive)

        levels = convert_levels(banks, "jitendex")
        self.assertEqual([(a.headword, a.level) for a in levels], [("食べる", JlptLevel.N5)])

        kanji = convert_kanji(banks, "jitendex")
        self.assertEqual(kanji[0].character, "食")
        self.assertEqual(kanji[0].meanings, ("eat", "food"))
        self.assertIn("た", kanji[0].readings())
        self.assertIn("しょく", kanji[0].readings())

    def test_flatten_plain_glossary(self):
        glosses, examples = flatten_glossary(("to eat", {"type": "text", "text": "to  dine"}, "to eat"))
        self.assertEqual(glosses, ["to eat", "to dine"])
        self.assertEqual(examples, [])

    def test_invalid_json_is_malformed(self):
        path = self.tmp / "broken.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("term_bank_1.json", "[[\"食べる\",")
        with self.assertRaises(MalformedSourceError):
            read_archive(path)

    def test_bad_row_shape_is_malformed(self):
        path = Path(write_yomitan_zip(str(self.tmp / "short.zip"), terms=[["食べる", "たべる"]]))
        with self.assertRaises(MalformedSourceError):
            read_archive(path)

    def test_not_a_zip_is_malformed(self):
        path = self.tmp / "fake.zip"
        path.write_text("not a zip", encoding="utf-8")
        with self.assertRaises(MalformedSourceError):
            read_archive(path)


class TestJmdict(TempDirTestCase):

    def write(self, words):
        path = self.tmp / "jmdict-eng.json"
        path.write_text(json.dumps({"words": words}, ensure_ascii=False), encoding="utf-8")
        return path

    def test_word_to_entry(self):
        path = self.write([{
            "id": "1358280",
            "kanji": [{"text": "食べる"}, {"text": "喰べる"}],
            "kana": [{"text": "たべる"}],
            "sense": [{"partOfSpeech": ["v1", "vt"], "misc": [], "gloss": [{"text": "to eat"}]}],
        }])
        entries = read_jmdict(path, "jmdict")

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].headword, "食べる")
        self.assertEqual(entries[0].forms, ("食べる", "喰べる"))
        self.assertEqual(entries[0].senses[0].tags, ("v1", "vt"))
        self.assertEqual(entries[0].sequence, 1358280)

    def test_usually_kana_uses_kana_headword(self):
        path = self.write([{
            "id": "1",
            "kanji": [{"text": "流石"}],
            "kana": [{"text": "さすが"}],
            "sense": [{"partOfSpeech": ["adv"], "misc": ["uk"], "gloss": [{"text": "as one would expect"}]}],
        }])
        self.assertEqual(read_jmdict(path, "jmdict")[0].headword, "さすが")

    def test_word_without_kana_has_no_readings(self):
        path = self.write([{"id": "2", "kanji": [{"text": "〇"}], "kana": [], "sense": []}])
        self.assertEqual(read_jmdict(path, "jmdict")[0].readings, ())

    def test_missing_words_array_is_malformed(self):
        path = self.tmp / "other.json"
        path.write_text("{\"entries\": []}", encoding="utf-8")
        with self.assertRaises(MalformedSourceError):
            read_jmdict(path, "jmdict")


class TestTables(TempDirTestCase):

    def test_jlpt_lists(self):
        folder = self.tmp / "jlpt"
        folder.mkdir()
        (folder / "n5.csv").write_text(
            "jmdict_seq,kana,kanji,waller_definition\n"
            "1358280,たべる,食べる,to eat; to live on\n"
            ",テレビ,,television\n",
            encoding="utf-8",
        )
        (folder / "n4.csv").write_text("kana,kanji\nいけん,意見\n", encoding="utf-8")

        entries, levels = read_jlpt_lists(folder)

        self.assertEqual(
            [(a.headword, a.reading, a.level) for a in levels],
            [("食べる", "たべる", JlptLevel.N5), ("テレビ", "てれび", JlptLevel.N5), ("意見", "いけん", JlptLevel.N4)],
        )
        self.assertEqual(len(entries), 2, "rows without a definition only give levels")
        self.assertEqual(entries[0].senses[0].glosses, ("to eat", "to live on"))
        self.assertEqual(entries[0].sequence, 1358280)
        self.assertIsNone(entries[1].sequence)

    def test_jlpt_list_missing_kana_column(self):
        folder = self.tmp / "jlpt"
        folder.mkdir()
        (folder / "n5.csv").write_text("kanji,waller_definition\n食べる,to eat\n", encoding="utf-8")
        with self.assertRaises(MalformedSourceError):
            read_jlpt_lists(folder)

    def test_missing_jlpt_folder_is_empty(self):
        self.assertEqual(read_jlpt_lists(self.tmp / "absent"), ([], []))

    def test_example_corpus(self):
        path = self.tmp / "examples.tsv"
        path.write_text(
            "id\tjapanese\tenglish\tscore\ttranscription\n"
            "1\t肉を食べる。\tI eat meat.\t2.5\tにくをたべる。\n"
            "2\t魚を食べた。\tI ate fish.\t\t\n",
            encoding="utf-8",
        )
        sentences = read_example_corpus(path)

        self.assertEqual([s.sentence_id for s in sentences], ["1", "2"])
        self.assertEqual(sentences[0].score, 2.5)
        self.assertEqual(sentences[0].transcription, "にくをたべる。")
        self.assertEqual(sentences[1].score, 0.0)
        self.assertIsNone(sentences[1].transcription)

    def test_example_corpus_bad_score(self):
        path = self.tmp / "examples.tsv"
        path.write_text("id\tjapanese\tscore\n1\t肉を食べる。\thigh\n", encoding="utf-8")
        with self.assertRaises(MalformedSourceError):
            read_example_corpus(path)

    def test_example_corpus_duplicate_id(self):
        path = self.tmp / "examples.tsv"
        path.write_text("id\tjapanese\n1\t肉を食べる。\n1\t魚を食べた。\n", encoding="utf-8")
        with self.assertRaises(MalformedSourceError):
            read_example_corpus(path)

    def test_missing_example_corpus_is_empty(self):
        self.assertEqual(read_example_corpus(self.tmp / "absent.tsv"), [])


class TestDictionaryLoader(TempDirTestCase):

    def make_loader(self):
        return DictionaryLoader(
            dictionary_dir=str(self.tmp / "dictionaries"),
            kanji_dir=str(self.tmp / "kanji"),
            jlpt_dir=str(self.tmp / "jlpt"),
            examples_file=str(self.tmp / "examples.tsv"),
        )

    def test_source_id(self):
        self.assertEqual(source_id(Path("jitendex-yomitan.zip")), "jitendex")
        self.assertEqual(source_id(Path("JMdict_eng.json")), "jmdict")

    def test_empty_inputs_load_empty(self):
        loaded = self.make_loader().load()
        self.assertTrue(loaded.is_empty)
        self.assertEqual(loaded.source_order, ())

    def test_loads_all_sources(self):
        os.makedirs(self.tmp / "dictionaries")
        os.makedirs(self.tmp / "kanji")
        write_yomitan_zip(str(self.tmp / "dictionaries" / "jitendex.zip"), TERMS, METAS)
        write_yomitan_zip(str(self.tmp / "kanji" / "kanjidic.zip"), kanji_rows=KANJI_ROWS)
        (self.tmp / "examples.tsv").write_text(
            "id\tjapanese\tenglish\n1\t魚を食べた。\tI ate fish.\n", encoding="utf-8"
        )

        loaded = self.make_loader().load()

        self.assertEqual(loaded.source_order, ("jitendex",))
        self.assertEqual(len(loaded.entries), 1)
        self.assertEqual([k.character for k in loaded.kanji], ["食"])
        self.assertEqual(loaded.kanji[0].source, "kanjidic")
        self.assertEqual([s.sentence_id for s in loaded.examples], ["1", "jitendex:1358280:0"],
                         "corpus sentences should come before harvested ones")
        self.assertEqual([a.level for a in loaded.levels], [JlptLevel.N5])

    def test_frequency_only_archive_ranks_other_sources(self):
        os.makedirs(self.tmp / "dictionaries")
        write_yomitan_zip(str(self.tmp / "dictionaries" / "jitendex.zip"), terms=[
            ["犬", "いぬ", "n", "", 1, ["dog"], 1, ""],
            ["猫", "ねこ", "n", "", 1, ["cat"], 2, ""],
        ])
        write_yomitan_zip(str(self.tmp / "dictionaries" / "jpdb.zip"), metas=[
            ["犬", "freq", {"reading": "いぬ", "frequency": 700}],
            ["猫", "freq", 900],
            ["猫", "freq", {"reading": "ねこ", "frequency": 1200}],
        ])

        loaded = self.make_loader().load()

        ranks = {e.headword: e.frequency_rank for e in loaded.entries}
        self.assertEqual(ranks["犬"], 700)
        self.assertEqual(ranks["猫"], 900, "headword-only ranks apply and the lowest rank wins")

    def test_malformed_dictionary_propagates(self):
        os.makedirs(self.tmp / "dictionaries")
        (self.tmp / "dictionaries" / "broken.zip").write_text("nope", encoding="utf-8")
        with self.assertRaises(MalformedSourceError):
            self.make_loader().load()


if __name__ == '__main__':
    unittest.main()
