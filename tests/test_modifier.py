import unittest
from io import BytesIO
from unittest import mock

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml.ns import qn

from docx_restyle import config
from docx_restyle.errors import ImageEmbedFailure, ModificationBuildError, PackageReadError
from docx_restyle.models import ExtractedImage, FontModificationOptions, ModificationRule
from docx_restyle.modifier import (
    EMU_PER_PX,
    DocumentModifier,
    decode_data_uri,
    display_size,
    plan_image_placement,
    role_style,
)

from docx_builders import build_docx, patch_docx, png_bytes, run

PROSE = "本文介绍了自动排版工具的设计与实现，并对其效果进行了评估。" * 3


def _source() -> bytes:
    return build_docx(
        [
            "实验报告",
            "（张三）",
            {"runs": [run("第一段", font="楷体", size=10.5), run("加粗部分", bold=True)]},
            {"text": "如下图", "images": [png_bytes(width=8, height=4)]},
            PROSE,
        ]
    )


def _open(data: bytes):
    return Document(BytesIO(data))


def _east_asia(run) -> str | None:
    return run._r.rPr.rFonts.get(qn("w:eastAsia"))


def _image(name: str, paragraph_index: int | None = None, run_index: int | None = None) -> ExtractedImage:
    return ExtractedImage(
        name=name,
        mime_type="image/png",
        size=1,
        data=b"x",
        paragraph_index=paragraph_index,
        run_index=run_index,
    )


class DocumentModifierTests(unittest.TestCase):
    def setUp(self) -> None:
        self._write_logs = config.WRITE_LOGS
        config.WRITE_LOGS = False

    def tearDown(self) -> None:
        config.WRITE_LOGS = self._write_logs

    def test_roles_are_rebuilt_with_component_defaults(self) -> None:
        modifier = DocumentModifier()
        output = _open(modifier.modify(_source()))
        texts = [p.text for p in output.paragraphs]

        self.assertEqual(texts[0], "实验报告")
        self.assertEqual(texts[1], "张三")
        self.assertEqual(texts[2], "第一段加粗部分")
        self.assertEqual(output.paragraphs[0].style.name, "Document Title")
        self.assertEqual(output.paragraphs[1].style.name, "Document Author")
        self.assertEqual(output.paragraphs[2].style.name, "Document Body")

        title_run = output.paragraphs[0].runs[0]
        self.assertEqual(_east_asia(title_run), "黑体")
        self.assertEqual(title_run.font.size.pt, 16.0)
        self.assertTrue(title_run.font.bold)
        self.assertEqual(output.paragraphs[0].alignment, WD_ALIGN_PARAGRAPH.CENTER)

        body_runs = output.paragraphs[2].runs
        self.assertEqual(len(body_runs), 2)
        for body_run in body_runs:
            self.assertEqual(_east_asia(body_run), "宋体")
            self.assertEqual(body_run.font.name, "宋体")
            self.assertEqual(body_run.font.size.pt, 12.0)
            self.assertFalse(body_run.font.bold)
        self.assertEqual(modifier.last_report.body_paragraphs, 3)

    def test_body_font_override(self) -> None:
        options = FontModificationOptions(target_font_name="仿宋", target_font_size=14, target_color="#C00000")
        output = _open(DocumentModifier().modify(_source(), body_options=options))

        body_run = output.paragraphs[2].runs[0]
        self.assertEqual(_east_asia(body_run), "仿宋")
        self.assertEqual(body_run.font.size.pt, 14.0)
        self.assertEqual(str(body_run.font.color.rgb), "C00000")
        title_run = output.paragraphs[0].runs[0]
        self.assertEqual(_east_asia(title_run), "黑体")

    def test_prefix_and_suffix(self) -> None:
        output = _open(
            DocumentModifier().modify(
                _source(),
                title_options=FontModificationOptions(add_prefix="【", add_suffix="】"),
                author_options=FontModificationOptions(add_prefix="作者："),
            )
        )
        self.assertEqual(output.paragraphs[0].text, "【实验报告】")
        self.assertEqual(output.paragraphs[1].text, "作者：张三")

    def test_modification_rule_targets_one_run(self) -> None:
        rule = ModificationRule(original_style_key="p-2-r-1", target_font_size=18, target_underline=True)
        output = _open(
            DocumentModifier().modify(
                _source(),
                body_options=FontModificationOptions(modification_rules=(rule,)),
            )
        )
        first, second = output.paragraphs[2].runs
        self.assertEqual(first.font.size.pt, 12.0)
        self.assertFalse(first.font.underline)
        self.assertEqual(second.font.size.pt, 18.0)
        self.assertTrue(second.font.underline)

    def test_rule_alignment_applies_to_paragraph(self) -> None:
        rule = ModificationRule(original_style_key="p-2-r-0", target_alignment="right")
        output = _open(
            DocumentModifier().modify(
                _source(),
                body_options=FontModificationOptions(modification_rules=(rule,)),
            )
        )
        self.assertEqual(output.paragraphs[2].alignment, WD_ALIGN_PARAGRAPH.RIGHT)
        self.assertEqual(output.paragraphs[3].alignment, WD_ALIGN_PARAGRAPH.LEFT)

    def test_located_image_follows_its_paragraph(self) -> None:
        modifier = DocumentModifier()
        output = _open(modifier.modify(_source()))
        texts = [p.text for p in output.paragraphs]

        self.assertEqual(texts[3], "如下图")
        self.assertEqual(texts[4], "")
        self.assertEqual(len(output.inline_shapes), 1)
        shape = output.inline_shapes[0]
        self.assertEqual(shape.width, 400 * EMU_PER_PX)
        self.assertEqual(shape.height, 200 * EMU_PER_PX)
        self.assertEqual(texts[5], PROSE)
        self.assertEqual(modifier.last_report.image_total, 1)

    def test_images_are_conserved_with_placeholders(self) -> None:
        data = patch_docx(_source(), {"word/media/extra.webp": b"RIFF0000WEBPVP8 "})
        modifier = DocumentModifier()
        output = _open(modifier.modify(data))

        report = modifier.last_report
        self.assertEqual(report.image_total, 2)
        self.assertEqual(report.placeholders, ["word/media/extra.webp"])
        placeholders = [p for p in output.paragraphs if p.text.startswith("[图片:")]
        self.assertEqual(len(output.inline_shapes) + len(placeholders), 2)
        self.assertEqual(placeholders[0].text, "[图片: word/media/extra.webp]")
        self.assertEqual(placeholders[0].style.name, "Document Body")
        self.assertIn("image_embed", modifier.last_log_state.rules())

    def test_modify_alignment(self) -> None:
        output = _open(DocumentModifier().modify_alignment(_source(), body_alignment="justify"))
        self.assertEqual(output.paragraphs[2].alignment, WD_ALIGN_PARAGRAPH.JUSTIFY)
        self.assertEqual(output.paragraphs[0].alignment, WD_ALIGN_PARAGRAPH.CENTER)

    def test_modify_title(self) -> None:
        output = _open(DocumentModifier().modify_title(_source(), prefix="[终稿]"))
        self.assertEqual(output.paragraphs[0].text, "[终稿]实验报告")

    def test_document_without_title(self) -> None:
        output = _open(DocumentModifier().modify(build_docx([PROSE])))
        self.assertEqual([p.text for p in output.paragraphs], [PROSE])
        self.assertEqual(output.paragraphs[0].style.name, "Document Body")

    def test_invalid_options_raise_value_error(self) -> None:
        with self.assertRaises(ValueError):
            DocumentModifier().modify(_source(), body_options=FontModificationOptions(target_alignment="middle"))

    def test_unreadable_source(self) -> None:
        modifier = DocumentModifier()
        with self.assertRaises(PackageReadError) as ctx:
            modifier.modify(b"garbage")
        self.assertTrue(str(ctx.exception).startswith("修改文档失败: "))
        self.assertIsNotNone(modifier.last_log_state.error)

    def test_non_string_font_name_is_rejected_before_building(self) -> None:
        with self.assertRaises(ValueError):
            DocumentModifier().modify(_source(), body_options=FontModificationOptions(target_font_name=123))

    def test_builder_failure_is_wrapped(self) -> None:
        modifier = DocumentModifier()
        with mock.patch("docx_restyle.modifier.Document", side_effect=TypeError("value must be a string")):
            with self.assertRaises(ModificationBuildError) as ctx:
                modifier.modify(_source())
        self.assertEqual(str(ctx.exception), "修改文档失败: value must be a string")
        self.assertIsInstance(ctx.exception.__cause__, TypeError)
        self.assertEqual(modifier.last_log_state.error, "value must be a string")

    def test_malformed_document_has_single_prefix(self) -> None:
        data = patch_docx(_source(), {"word/document.xml": b"<w:document"})
        with self.assertRaises(PackageReadError) as ctx:
            DocumentModifier().modify(data)
        message = str(ctx.exception)
        self.assertTrue(message.startswith("修改文档失败: "))
        self.assertNotIn("文档解析失败", message)

    def test_output_is_stable(self) -> None:
        source = _source()
        first = [p.text for p in _open(DocumentModifier().modify(source)).paragraphs]
        second = [p.text for p in _open(DocumentModifier().modify(source)).paragraphs]
        self.assertEqual(first, second)


class RoleStyleTests(unittest.TestCase):
    def test_defaults(self) -> None:
        body = role_style("body")
        self.assertEqual(body.font_name, "宋体")
        self.assertEqual(body.font_size_pt, 12.0)
        self.assertEqual(body.first_line_indent_pt, 24.0)

    def test_override_only_set_fields(self) -> None:
        style = role_style("title", FontModificationOptions(target_font_name="楷体", target_color="#ff0000"))
        self.assertEqual(style.font_name, "楷体")
        self.assertEqual(style.color, "FF0000")
        self.assertEqual(style.font_size_pt, 16.0)
        self.assertTrue(style.bold)


class PlacementTests(unittest.TestCase):
    def test_located_images(self) -> None:
        images = [
            _image("late", paragraph_index=9, run_index=0),
            _image("early", paragraph_index=0, run_index=0),
            _image("middle", paragraph_index=4, run_index=1),
            _image("exact", paragraph_index=5, run_index=0),
        ]
        plan = plan_image_placement([2, 3, 5], images)

        self.assertEqual([image.name for image in plan.leading], ["early"])
        self.assertEqual([image.name for image in plan.after[1]], ["middle"])
        self.assertEqual([image.name for image in plan.after[2]], ["exact", "late"])
        self.assertEqual(plan.trailing, [])
        self.assertEqual(plan.count(), 4)

    def test_unlocated_image_is_spread_proportionally(self) -> None:
        plan = plan_image_placement([2, 3, 5], [_image("floating")])
        self.assertEqual([image.name for image in plan.after[1]], ["floating"])

    def test_zero_tolerance_appends_unlocated_images(self) -> None:
        plan = plan_image_placement([2, 3, 5], [_image("a"), _image("b")], tolerance_factor=0)
        self.assertEqual([image.name for image in plan.trailing], ["a", "b"])

    def test_no_body_paragraphs(self) -> None:
        plan = plan_image_placement([], [_image("a", paragraph_index=1), _image("b")])
        self.assertEqual([image.name for image in plan.trailing], ["a", "b"])


class ImageHelperTests(unittest.TestCase):
    def test_decode_data_uri(self) -> None:
        self.assertEqual(decode_data_uri("data:image/png;base64,YWJj"), b"abc")
        self.assertEqual(decode_data_uri("YWJj"), b"abc")
        with self.assertRaises(ImageEmbedFailure):
            decode_data_uri("data:image/png;base64,@@@")

    def test_display_size_keeps_aspect_ratio(self) -> None:
        self.assertEqual(display_size(png_bytes(width=4, height=3)), (400 * EMU_PER_PX, 300 * EMU_PER_PX))
        self.assertEqual(display_size(png_bytes(width=2, height=4)), (400 * EMU_PER_PX, 800 * EMU_PER_PX))

    def test_display_size_falls_back_for_unknown_formats(self) -> None:
        self.assertEqual(display_size(b"not an image"), (400 * EMU_PER_PX, 300 * EMU_PER_PX))


if __name__ == "__main__":
    unittest.main()
