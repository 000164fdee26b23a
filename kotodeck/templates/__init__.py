"""Card templates with CSS and HTML."""

from typing import Dict, List, Optional


class CardTemplates:
    """Container for all card templates and styling."""

    DEFAULT_STYLE: Dict[str, str] = {
        "card_bg": "#f4f6f9",
        "container_bg": "#ffffff",
        "text_color": "#333333",
        "header_text": "#ffffff",
        "label_color": "#adb5bd",
        "definition_color": "#212529",
        "section_border": "#f2f2f2",
        "card_radius": "12px",
        "card_shadow": "0 2px 10px rgba(0,0,0,0.05)",
        "n5_color": "#27ae60",
        "n4_color": "#2980b9",
        "n3_color": "#8e44ad",
        "n2_color": "#d35400",
        "n1_color": "#c0392b",
        "none_color": "#34495e",
    }

    CSS = """
    .card { font-family: "Hiragino Kaku Gothic Pro", "Noto Sans JP", "Yu Gothic", Meiryo, sans-serif; font-size: 16px; line-height: 1.5; color: var(--text-color); background-color: var(--card-bg); margin: 0; padding: 0; }
    .card-container { background: var(--container-bg); border-radius: var(--card-radius); box-shadow: var(--card-shadow); overflow: hidden; max-width: 500px; margin: 10px auto; text-align: left; padding-bottom: 15px; }

    .header-box { padding: 25px 20px; text-align: center; color: var(--header-text) !important; background-color: var(--none-color); }
    .level-N5 { background-color: var(--n5-color); }
    .level-N4 { background-color: var(--n4-color); }
    .level-N3 { background-color: var(--n3-color); }
    .level-N2 { background-color: var(--n2-color); }
    .level-N1 { background-color: var(--n1-color); }

    .word-main { font-size: 2.6em; font-weight: 700; margin: 0; line-height: 1.3; color: var(--header-text); }
    .word-meta { font-size: 0.85em; opacity: 0.9; margin-top: 8px; font-family: monospace; color: var(--header-text); }
    .word-main rt { font-size: 0.4em; font-weight: 400; }

    .section { padding: 12px 20px; border-bottom: 1px solid var(--section-border); }
    .label { font-size: 0.7em; text-transform: uppercase; color: var(--label-color); font-weight: 800; letter-spacing: 1.2px; display: block; margin-bottom: 6px; }
    .definition { font-size: 1.05em; color: var(--definition-color); }
    .definition ol { margin: 0; padding-left: 20px; }
    .pos { font-size: 0.75em; color: #868e96; margin-right: 4px; }

    .kanji-row { margin-bottom: 6px; }
    .kanji-char { font-size: 1.6em; margin-right: 10px; vertical-align: middle; }
    .kanji-readings { font-size: 0.85em; color: #495057; }
    .kanji-unknown { color: #adb5bd; }

    .sentence { margin-bottom: 10px; }
    .sentence-text { font-size: 1.1em; }
    .sentence-translation { font-size: 0.9em; color: #868e96; }

    .prompt { padding: 50px 20px; text-align: center; }
    .prompt-label { font-size: 0.85em; color: #bbb; text-transform: uppercase; }
    .prompt-word { font-size: 3em; font-weight: 700; color: #2c3e50; margin-top: 15px; }
    .footer { font-size: 0.75em; color: #adb5bd; text-align: right; padding: 6px 20px 0; }
    """

    @classmethod
    def normalize_style(cls, style: Optional[Dict[str, str]]) -> Dict[str, str]:
        """Merge user style with defaults."""
        merged = cls.DEFAULT_STYLE.copy()
        if style:
            for key, value in style.items():
                if value is not None:
                    merged[key] = value
        return merged

    @classmethod
    def get_css(cls, style: Optional[Dict[str, str]] = None) -> str:
        """Build CSS with variables from style config."""
        cfg = cls.normalize_style(style)
        vars_css = ":root {" + "".join(
            f"--{key.replace('_', '-')}:{value};" for key, value in cfg.items()
        ) + "}"
        return f"{vars_css}\n{cls.CSS}"

    FRONT_REC = """<div class="card-container"><div class="prompt"><div class="prompt-label">Read and recall</div><div class="prompt-word">{{Headword}}</div></div></div>"""

    FRONT_LIST = """<div class="card-container"><div class="prompt"><div class="prompt-label">Listen and recall</div><div style="font-size:3em; margin-top:15px;">{{Audio}}</div></div></div>"""

    BACK = """
    <div class="card-container">
        <div class="header-box level-{{Level}}">
            <div class="word-main">{{furigana:Word}}</div>
            <div class="word-meta">{{Reading}}{{#Level}} • {{Level}}{{/Level}}</div>
        </div>

        <div class="section"><span class="label">Meaning</span><div class="definition">{{Meaning}}</div></div>

        {{#Kanji}}
        <div class="section"><span class="label">Kanji</span>{{Kanji}}</div>
        {{/Kanji}}

        {{#Sentences}}
        <div class="section"><span class="label">Examples</span>{{Sentences}}</div>
        {{/Sentences}}

        <div style="display:none;">{{Audio}}</div>
        <div class="footer">#{{Rank}}</div>
    </div>
    """

    @classmethod
    def get_templates(cls) -> List[Dict[str, str]]:
        """genanki template definitions: recognition, then listening."""
        return [
            {
                "name": "Recognition",
                "qfmt": cls.FRONT_REC,
                "afmt": cls.BACK,
            },
            {
                # empty Audio field means Anki generates no listening card
                "name": "Listening",
                "qfmt": "{{#Audio}}" + cls.FRONT_LIST + "{{/Audio}}",
                "afmt": cls.BACK,
            },
        ]
