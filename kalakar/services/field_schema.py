"""Static product-field tiers and per-stage question templates."""

from dataclasses import dataclass
from typing import Any

from kalakar.models.conversation import ConversationStage
from kalakar.schemas.product import ProductInfo

# Fields that must be gathered before the conversation can move past basics
CRITICAL_FIELDS: tuple[str, ...] = (
    "productType",
    "materials",
    "colors",
    "craftingProcess",
)

# Fields that should be gathered for a good listing
IMPORTANT_FIELDS: tuple[str, ...] = (
    "dimensions",
    "timeToMake",
    "pricing",
    "uniqueFeatures",
)

NICE_TO_HAVE_FIELDS: tuple[str, ...] = (
    "culturalSignificance",
    "targetMarket",
    "careInstructions",
    "customizationOptions",
)

# Every field tracked for confidence, in declaration order
ALL_FIELDS: tuple[str, ...] = (
    "productType",
    "materials",
    "colors",
    "craftingProcess",
    "dimensions",
    "culturalSignificance",
    "timeToMake",
    "pricing",
    "targetMarket",
    "uniqueFeatures",
    "careInstructions",
    "customizationOptions",
)

ARRAY_FIELDS: frozenset[str] = frozenset(
    {"materials", "colors", "uniqueFeatures", "customizationOptions"}
)

# camelCase field name -> ProductInfo attribute
FIELD_ATTRIBUTES: dict[str, str] = {
    field.alias or name: name for name, field in ProductInfo.model_fields.items()
}

DEFAULT_QUESTION = "Can you tell me more about your product?"


@dataclass(frozen=True)
class QuestionTemplate:
    """A question with ``{placeholder}`` tokens and the fields it asks about."""

    text: str
    targets: tuple[str, ...] = ()

    @property
    def leading_clause(self) -> str:
        return self.text.split("?")[0]


QUESTION_TEMPLATES: dict[ConversationStage, tuple[QuestionTemplate, ...]] = {
    ConversationStage.INTRODUCTION: (
        QuestionTemplate(
            "Hello! I'm here to help you create a beautiful listing for your handmade "
            "product. Can you start by telling me what you've made?",
            ("productType",),
        ),
        QuestionTemplate(
            "Welcome! I'd love to learn about your craft. What product would you like to "
            "create a listing for today?",
            ("productType",),
        ),
        QuestionTemplate(
            "Namaste! I'm excited to help showcase your beautiful handmade creation. "
            "Please tell me about the product you'd like to list.",
            ("productType",),
        ),
    ),
    ConversationStage.BASIC_INFO: (
        QuestionTemplate(
            "That sounds wonderful! Can you tell me more about what materials you used "
            "to make this {productType}?",
            ("materials",),
        ),
        QuestionTemplate(
            "How big is your {productType}? Can you describe its size or dimensions?",
            ("dimensions",),
        ),
        QuestionTemplate("What colors do you see in your {productType}?", ("colors",)),
        QuestionTemplate(
            "Could you describe the shape and form of your {productType}?",
            ("productType", "uniqueFeatures"),
        ),
        QuestionTemplate(
            "How do you make this {productType}? Can you describe the crafting process?",
            ("craftingProcess",),
        ),
    ),
    ConversationStage.MATERIALS_CRAFTING: (
        QuestionTemplate(
            "How did you make this {productType}? Can you walk me through your crafting "
            "process?",
            ("craftingProcess",),
        ),
        QuestionTemplate(
            "Where do you source your {materials} from? Are they locally sourced?",
            ("materials",),
        ),
        QuestionTemplate(
            "How long does it typically take you to create one {productType}?",
            ("timeToMake",),
        ),
        QuestionTemplate(
            "What tools or techniques do you use in making this {productType}?",
            ("craftingProcess",),
        ),
        QuestionTemplate(
            "Are there any special skills or techniques involved in creating this?",
            ("craftingProcess", "uniqueFeatures"),
        ),
    ),
    ConversationStage.CULTURAL_SIGNIFICANCE: (
        QuestionTemplate(
            "Does this {productType} have any cultural or traditional significance?",
            ("culturalSignificance",),
        ),
        QuestionTemplate(
            "Is this based on any traditional Indian art form or technique?",
            ("culturalSignificance",),
        ),
        QuestionTemplate(
            "What inspired you to create this particular design?",
            ("culturalSignificance", "uniqueFeatures"),
        ),
        QuestionTemplate(
            "Are there any stories or traditions connected to this type of craft?",
            ("culturalSignificance",),
        ),
        QuestionTemplate(
            "Does this represent any particular region's artistic heritage?",
            ("culturalSignificance",),
        ),
    ),
    ConversationStage.PRICING_MARKET: (
        QuestionTemplate(
            "What do you think would be a fair price for this {productType}?",
            ("pricing",),
        ),
        QuestionTemplate(
            "Who do you think would love to buy this {productType}?",
            ("targetMarket",),
        ),
        QuestionTemplate(
            "Have you sold similar items before? What was the response?",
            ("targetMarket", "pricing"),
        ),
        QuestionTemplate(
            "What factors do you consider when pricing your handmade items?",
            ("pricing",),
        ),
        QuestionTemplate(
            "Do you think this would appeal more to local customers or international buyers?",
            ("targetMarket",),
        ),
    ),
    ConversationStage.FINAL_DETAILS: (
        QuestionTemplate(
            "How should someone care for this {productType} to keep it in good condition?",
            ("careInstructions",),
        ),
        QuestionTemplate(
            "Can this {productType} be customized in different colors or sizes?",
            ("customizationOptions",),
        ),
        QuestionTemplate(
            "Are there any special features that make this {productType} unique?",
            ("uniqueFeatures",),
        ),
        QuestionTemplate(
            "Is there anything else special about this {productType} that buyers should know?",
            ("uniqueFeatures",),
        ),
    ),
    ConversationStage.SUMMARY: (
        QuestionTemplate(
            "Let me summarize what we've discussed about your beautiful {productType}."
        ),
        QuestionTemplate(
            "Based on our conversation, here's what I understand about your {productType}."
        ),
    ),
}

# Missing fields whose templates are preferred, highest priority first
STAGE_FIELD_PRIORITY: dict[ConversationStage, tuple[str, ...]] = {
    ConversationStage.BASIC_INFO: ("materials", "colors", "dimensions"),
    ConversationStage.MATERIALS_CRAFTING: ("craftingProcess", "timeToMake"),
    ConversationStage.CULTURAL_SIGNIFICANCE: ("culturalSignificance",),
    ConversationStage.PRICING_MARKET: ("pricing", "targetMarket"),
    ConversationStage.FINAL_DETAILS: (
        "careInstructions",
        "customizationOptions",
        "uniqueFeatures",
    ),
}


def field_value(info: ProductInfo | dict[str, Any], field: str) -> Any:
    """Look up a field by its camelCase name on a model or a plain dict."""
    if isinstance(info, ProductInfo):
        return getattr(info, FIELD_ATTRIBUTES[field])
    if field in info:
        return info[field]
    return info.get(FIELD_ATTRIBUTES.get(field, field))


def has_meaningful_value(value: Any) -> bool:
    """True for non-blank strings, non-empty collections and any other non-None value."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, list | tuple | dict | set):
        return len(value) > 0
    return True
