import re
import unittest

from docx_restyle import config
from docx_restyle.analyzer import DocumentAnalyzer, count_words
from docx_restyle.errors import PackageReadError

from docx_builders import (
    build_docx,
    document_xml,
    drawing_run,
    patch_docx,
    png_bytes,
    read_parts,
    run,
    set_doc_defaults,
    strip_style_fonts,
)

PROSE = (
    "随着信息技术的快速发展，文档排版工作逐渐从手工调整转向自动化处理，"
    "这不仅提高了工作效率，也保证了格式的一致性。"
) * 4


class DocumentAnalyzerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._write_logs = config.WRITE_LOGS
        config.WRITE_LOGS = False

    def tearDown(self) -> None:
        config.WRITE_LOGS = self._write_logs

    def test_title_and_author_only(self) -> None:
        data = build_docx(["实验报告", "（张三）"])
        result = DocumentAnalyzer().analyze(data)

        self.assertEqual(result.title.text, "实验报告")
        self.assertEqual(result.author.text, "张三")
        self.assertEqual(result.body_text, "")
        self.assertEqual(result.body_styles, [])
        self.assertTrue(result.paragraphs[0].is_title)
        self.assertTrue(result.paragraphs[1].is_author)
        self.assertEqual(result.body_paragraphs(), [])

    def test_prose_has_no_title(self) -> None:
        self.assertGreaterEqual(len(PROSE), 200)
        result = DocumentAnalyzer().analyze(build_docx([PROSE]))

        self.assertIsNone(result.title)
        self.assertIsNone(result.author)
        self.assertEqual(result.body_text, PROSE)
        self.assertEqual(len(result.body_paragraphs()), 1)

    def test_identical_runs_collapse_to_one_body_style(self) -> None:
        runs = [run(text, font="宋体", size=12) for text in ("甲", "乙", "丙", "丁", "戊")]
        data = build_docx(["实验报告", {"runs": runs}])

        for deep in (True, False):
            result = DocumentAnalyzer().analyze(data, use_deep_detection=deep)
            self.assertEqual(len(result.paragraphs[1].styles), 5)
            self.assertEqual(len(result.body_styles), 1)
            self.assertEqual(result.body_styles[0].name, "宋体")
            self.assertEqual(result.body_styles[0].size, 12.0)

    def test_short_second_paragraph_without_marker_is_body(self) -> None:
        analyzer = DocumentAnalyzer()
        result = analyzer.analyze(build_docx(["实验报告", "第一章", PROSE]))

        self.assertIsNone(result.author)
        self.assertEqual(result.body_text, "第一章\n\n" + PROSE)
        self.assertIn("role_ambiguous", analyzer.last_log_state.rules())

    def test_blank_paragraphs_are_skipped_but_keep_indices(self) -> None:
        result = DocumentAnalyzer().analyze(build_docx(["实验报告", "", "   ", PROSE]))

        self.assertEqual([record.index for record in result.paragraphs], [0, 3])
        self.assertEqual(result.body_text, PROSE)

    def test_deep_detection_resolves_fonts(self) -> None:
        data = build_docx([{"text": "年度总结", "style": "Title"}, PROSE])
        result = DocumentAnalyzer().analyze(data)

        self.assertIsNotNone(result.deep_font_analysis)
        title_style = result.title.styles[0]
        self.assertIsNotNone(title_style.name)
        self.assertIsNotNone(title_style.size)
        self.assertEqual(title_style.original_style_key, "p-0-r-0")
        self.assertEqual(result.paragraphs[0].style_id, "Title")
        self.assertTrue(result.deep_font_analysis.fonts)

    def test_shallow_mode_has_no_deep_analysis(self) -> None:
        data = build_docx(["实验报告", {"text": PROSE, "font": "仿宋", "size": 14, "bold": True}])
        result = DocumentAnalyzer().analyze(data, use_deep_detection=False)

        self.assertIsNone(result.deep_font_analysis)
        body = result.body_styles[0]
        self.assertEqual(body.name, "仿宋")
        self.assertEqual(body.size, 14.0)
        self.assertTrue(body.bold)

    def test_table_paragraphs_share_the_index_space(self) -> None:
        body = (
            "<w:p><w:r><w:t>实验报告</w:t></w:r></w:p>"
            "<w:tbl><w:tr><w:tc><w:p><w:r><w:t>单元格</w:t></w:r></w:p></w:tc></w:tr></w:tbl>"
            f"<w:p><w:r><w:t>{PROSE}</w:t></w:r></w:p>"
        )
        data = patch_docx(build_docx(["占位"]), {"word/document.xml": document_xml(body)})
        result = DocumentAnalyzer().analyze(data)

        self.assertEqual([record.index for record in result.paragraphs], [0, 1, 2])
        self.assertEqual(result.paragraphs[1].text, "单元格")
        self.assertEqual(result.paragraphs[1].styles[0].original_style_key, "p-1-r-0")

    def test_images_are_reported_with_positions(self) -> None:
        data = build_docx(["实验报告", {"text": "如图所示", "images": [png_bytes()]}, PROSE])
        analyzer = DocumentAnalyzer()
        result = analyzer.analyze(data)

        self.assertEqual(len(result.images), 1)
        self.assertEqual(result.images[0].paragraph_index, 1)
        self.assertEqual(analyzer.last_log_state.image_count, 1)
        self.assertEqual(analyzer.last_log_state.located_image_count, 1)
        self.assertEqual(analyzer.last_extraction.total_count, 1)

    def test_images_can_be_skipped(self) -> None:
        data = build_docx([{"text": "如图所示", "images": [png_bytes()]}])
        analyzer = DocumentAnalyzer()
        result = analyzer.analyze(data, include_images=False)
        self.assertEqual(result.images, [])
        self.assertIsNone(analyzer.last_extraction)

    def test_dangling_image_relationship_is_not_fatal(self) -> None:
        body = (
            "<w:p><w:r><w:t>实验报告</w:t></w:r></w:p>"
            f"<w:p>{drawing_run('rId999')}</w:p>"
            f"<w:p><w:r><w:t>{PROSE}</w:t></w:r></w:p>"
        )
        data = patch_docx(build_docx(["占位"]), {"word/document.xml": document_xml(body)})
        result = DocumentAnalyzer().analyze(data)
        self.assertEqual(result.images, [])
        self.assertEqual(result.title.text, "实验报告")
        self.assertEqual([record.index for record in result.paragraphs], [0, 2])

    def test_missing_document_part_is_fatal(self) -> None:
        data = patch_docx(build_docx(["实验报告"]), remove=["word/document.xml"])
        analyzer = DocumentAnalyzer()
        with self.assertRaises(PackageReadError) as ctx:
            analyzer.analyze(data)
        self.assertTrue(str(ctx.exception).startswith("文档解析失败: "))
        self.assertIsNotNone(analyzer.last_log_state.error)

    def test_invalid_bytes_are_fatal(self) -> None:
        with self.assertRaises(PackageReadError) as ctx:
            DocumentAnalyzer().analyze(b"not a zip file")
        self.assertTrue(str(ctx.exception).startswith("文档解析失败: "))

    def test_missing_styles_part_is_recoverable(self) -> None:
        data = build_docx(["实验报告", PROSE])
        rels = read_parts(data)["word/_rels/document.xml.rels"]
        rels = re.sub(rb'<Relationship [^>]*Target="styles\.xml"[^>]*/>', b"", rels)
        data = patch_docx(
            data,
            {"word/_rels/document.xml.rels": rels},
            remove=["word/styles.xml"],
        )
        analyzer = DocumentAnalyzer()
        result = analyzer.analyze(data)

        self.assertEqual(result.title.text, "实验报告")
        self.assertEqual(result.body_styles[0].name, config.FALLBACK_EAST_ASIA_FONT)
        self.assertIn("package_read", analyzer.last_log_state.rules())

    def test_unstyled_runs_fall_back_to_doc_defaults(self) -> None:
        data = build_docx(["实验报告", PROSE])
        styles = read_parts(data)["word/styles.xml"]
        styles = set_doc_defaults(strip_style_fonts(styles), east_asia="仿宋", h_ansi="Arial")
        result = DocumentAnalyzer().analyze(patch_docx(data, {"word/styles.xml": styles}))

        self.assertEqual(result.body_styles[0].name, "仿宋")
        self.assertEqual(result.deep_font_analysis.default_fonts["eastAsia"], "仿宋")
        self.assertEqual(result.deep_font_analysis.default_fonts["hAnsi"], "Arial")

    def test_latin_default_used_without_east_asia(self) -> None:
        data = build_docx(["实验报告", PROSE])
        styles = read_parts(data)["word/styles.xml"]
        styles = set_doc_defaults(strip_style_fonts(styles), h_ansi="Arial", ascii_font="Courier New")
        result = DocumentAnalyzer().analyze(patch_docx(data, {"word/styles.xml": styles}))

        self.assertEqual(result.body_styles[0].name, "Arial")

    def test_analysis_is_deterministic(self) -> None:
        data = build_docx(
            [
                "实验报告",
                "（张三）",
                {"runs": [run("正文", font="宋体", size=12), run("强调", bold=True)]},
                {"text": "插图", "images": [png_bytes()]},
            ]
        )
        first = DocumentAnalyzer().analyze(data).to_dict()
        second = DocumentAnalyzer().analyze(data).to_dict()
        self.assertEqual(first, second)

    def test_to_dict_shape(self) -> None:
        data = build_docx(["实验报告", "（张三）", PROSE])
        payload = DocumentAnalyzer().analyze(data).to_dict(include_image_data=False)
        self.assertEqual(payload["title"]["text"], "实验报告")
        self.assertTrue(payload["title"]["exists"])
        self.assertEqual(payload["author"]["text"], "张三")
        self.assertEqual(payload["bodyText"], PROSE)
        self.assertIn("deepFontAnalysis", payload)


class CountWordsTests(unittest.TestCase):
    def test_cjk_text_counts_characters(self) -> None:
        self.assertEqual(count_words("实验 报告\n（张三）"), 8)

    def test_latin_text_counts_words(self) -> None:
        self.assertEqual(count_words("Hello world\nfoo"), 3)

    def test_empty(self) -> None:
        self.assertEqual(count_words("  \n "), 0)


if __name__ == "__main__":
    unittest.main()
