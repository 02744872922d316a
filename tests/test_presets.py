import unittest

from docx_restyle.presets import (
    PRESET_TEMPLATES,
    default_template,
    get_template,
    template_choices,
    template_options,
)


class PresetTests(unittest.TestCase):
    def test_every_preset_converts_to_valid_options(self) -> None:
        for template in PRESET_TEMPLATES:
            options = template_options(template)
            self.assertEqual(set(options), {"title", "author", "body"})
            for item in options.values():
                item.validate()
                self.assertIsNotNone(item.target_font_size)

    def test_academic_paper(self) -> None:
        template = get_template("academic-paper")
        options = template_options(template)
        self.assertEqual(options["title"].target_font_name, "黑体")
        self.assertEqual(options["title"].target_font_size, 14.0)
        self.assertTrue(options["title"].target_bold)
        self.assertEqual(options["body"].target_font_size, 10.5)
        self.assertEqual(options["body"].target_alignment, "justify")
        self.assertEqual(options["author"].target_font_size, 12.0)
        self.assertEqual(options["body"].target_color, "000000")
        self.assertIsNone(options["body"].target_bold)

    def test_official_document(self) -> None:
        options = template_options(get_template("official-document"))
        self.assertEqual(options["title"].target_font_size, 22.0)
        self.assertEqual(options["body"].target_font_name, "仿宋")
        self.assertEqual(options["body"].target_font_size, 16.0)
        self.assertEqual(options["author"].target_alignment, "right")

    def test_lookup(self) -> None:
        self.assertIsNone(get_template("missing"))
        self.assertIs(default_template(), PRESET_TEMPLATES[0])
        self.assertEqual(
            [choice["value"] for choice in template_choices()],
            ["academic-paper", "official-document", "business-report", "simple-document"],
        )

    def test_to_dict(self) -> None:
        data = get_template("simple-document").to_dict()
        self.assertEqual(data["id"], "simple-document")
        self.assertTrue(data["isPreset"])
        self.assertEqual(data["titleStyle"]["fontSize"], "小二")
        self.assertEqual(data["bodyStyle"]["fontName"], "宋体")


if __name__ == "__main__":
    unittest.main()
