"""
Narration Prompts
=================

Prompt construction for the advertising narration.

The prompt is a pure function of the previous completed narration and the
prompt mode. Both templates ask the model to:
    - treat the images as consecutive video frames
    - act as an advertising advisor
    - describe what changed since the previous narration
    - prefer legible on-screen text as the advertising subject
    - answer with a short search term and the reason for it

Templates use a single ``{previous}`` placeholder.
"""

from typing import Optional

from ad_narrator.models.state import PromptMode


LOCALIZED_TEMPLATE = """これは動画から連続して切り出したフレームです。
あなたは優秀な広告アドバイザーです。
映像の状況をよく観察し、撮影者が今何を求めているかを考えて、内容に合った効果的な広告を選んでください。
映っている物そのものを解説するのではなく、付属品や周辺商品を勧めて購買意欲を高めてください。
出力は『10文字以内の短い検索ワード』と『選んだ理由の説明文』にしてください。
- 前のフレームの説明: {previous}
- 前のフレームと変わらない部分の描写は省き、変化した部分について述べてください。
- 読める文字があれば優先して広告の題材にしてください。読めなければ触れなくて構いません。
- 「現在のフレームでは」のような前置きは省いてください。"""

ENGLISH_TEMPLATE = """These images are consecutive frames from a live video.
You are an experienced advertising advisor.
Observe the scene, work out what the person filming wants right now, and pick an advertisement that fits it.
Recommend accessories or related products instead of describing what is already on screen.
Answer with a short search term (three words at most) followed by a one-sentence reason for the choice.
- Description of the previous frames: {previous}
- Skip anything unchanged since the previous description and focus on what changed.
- If there is legible text in the frames, prefer it as the subject of the advertisement. Ignore text you cannot read.
- Do not start with phrases like "In the current frame"."""

NO_CONTEXT = {
    PromptMode.LOCALIZED: "なし",
    PromptMode.ENGLISH: "None",
}


class PromptBuilder:
    """
    Renders narration prompts.

    Attributes:
        templates: Template per prompt mode
    """

    def __init__(
        self,
        localized_template: Optional[str] = None,
        english_template: Optional[str] = None,
    ) -> None:
        self.templates = {
            PromptMode.LOCALIZED: localized_template or LOCALIZED_TEMPLATE,
            PromptMode.ENGLISH: english_template or ENGLISH_TEMPLATE,
        }
        for mode, template in self.templates.items():
            if "{previous}" not in template:
                raise ValueError(f"{mode.value} template is missing the {{previous}} placeholder")

    def build(self, context: Optional[str], mode: PromptMode) -> str:
        """
        Render the prompt for the next cycle.

        Args:
            context: Last completed narration, or None if there is none yet
            mode: Template to render

        Returns:
            Prompt text
        """
        previous = context if context else NO_CONTEXT[mode]
        return self.templates[mode].replace("{previous}", previous)


def build_prompt(context: Optional[str], mode: PromptMode = PromptMode.LOCALIZED) -> str:
    """Render a prompt with the default templates."""
    return PromptBuilder().build(context, mode)
