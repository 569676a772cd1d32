"""Presentation data for personas and journey stages.

Used by the personalization lookup to turn a visitor's persona and stage
into labels, calls to action and content focus for the storefront.
"""

from typing import Dict

from pydantic import BaseModel

from src.domain.models.visitor import JourneyStage, PersonaId


class StageCTA(BaseModel):
    text: str
    action: str


class PersonaPresentation(BaseModel):
    label: str
    landing_page: str
    cta_text: str
    cta_href: str


STAGE_DISPLAY_NAMES: Dict[JourneyStage, str] = {
    JourneyStage.UNAWARE: "New Visitor",
    JourneyStage.AWARE: "Problem Aware",
    JourneyStage.RECEPTIVE: "Learning",
    JourneyStage.ZMOT: "Researching",
    JourneyStage.OBJECTIONS: "Has Questions",
    JourneyStage.TEST_PREP: "Ready to Try",
    JourneyStage.CHALLENGE: "New Customer",
    JourneyStage.SUCCESS: "Seeing Results",
    JourneyStage.COMMITMENT: "Loyal Customer",
    JourneyStage.EVANGELIST: "Advocate",
}

STAGE_CTAS: Dict[JourneyStage, StageCTA] = {
    JourneyStage.UNAWARE: StageCTA(text="Learn More", action="/learn/"),
    JourneyStage.AWARE: StageCTA(text="Explore Solutions", action="/shop/"),
    JourneyStage.RECEPTIVE: StageCTA(text="See How It Works", action="/resources/"),
    JourneyStage.ZMOT: StageCTA(text="Compare Products", action="/collections/"),
    JourneyStage.OBJECTIONS: StageCTA(text="Get Answers", action="/faq/"),
    JourneyStage.TEST_PREP: StageCTA(text="Start Your Trial", action="/shop/"),
    JourneyStage.CHALLENGE: StageCTA(text="Get Support", action="/support/"),
    JourneyStage.SUCCESS: StageCTA(text="Reorder", action="/account/"),
    JourneyStage.COMMITMENT: StageCTA(text="Subscribe & Save", action="/subscriptions/"),
    JourneyStage.EVANGELIST: StageCTA(text="Refer a Friend", action="/referral/"),
}

STAGE_CONTENT_FOCUS: Dict[JourneyStage, str] = {
    JourneyStage.UNAWARE: "Problem education, blog content",
    JourneyStage.AWARE: "Solution overview, product categories",
    JourneyStage.RECEPTIVE: "Educational content, how-to guides",
    JourneyStage.ZMOT: "Product comparison, case studies",
    JourneyStage.OBJECTIONS: "FAQ, guarantees, testimonials",
    JourneyStage.TEST_PREP: "Starter bundles, first-time offers",
    JourneyStage.CHALLENGE: "Usage guides, support resources",
    JourneyStage.SUCCESS: "Reorder prompts, complementary products",
    JourneyStage.COMMITMENT: "Subscription options, bulk deals",
    JourneyStage.EVANGELIST: "Referral program, review requests",
}

PERSONA_PRESENTATION: Dict[PersonaId, PersonaPresentation] = {
    PersonaId.BACKYARD: PersonaPresentation(
        label="Backyard Flock",
        landing_page="/poultry/backyard/",
        cta_text="Shop Backyard Products",
        cta_href="/shop/poultry/backyard/",
    ),
    PersonaId.COMMERCIAL: PersonaPresentation(
        label="Commercial Poultry",
        landing_page="/poultry/commercial/",
        cta_text="Talk to a Specialist",
        cta_href="/contact/commercial/",
    ),
    PersonaId.LAWN: PersonaPresentation(
        label="Lawn & Garden",
        landing_page="/lawn/",
        cta_text="Shop Lawn Products",
        cta_href="/shop/lawn/",
    ),
    PersonaId.GENERAL: PersonaPresentation(
        label="All Products",
        landing_page="/shop/",
        cta_text="Shop All Products",
        cta_href="/shop/",
    ),
}


def stage_display_name(stage: JourneyStage) -> str:
    return STAGE_DISPLAY_NAMES[stage]


def stage_cta(stage: JourneyStage) -> StageCTA:
    return STAGE_CTAS[stage]


def stage_content_focus(stage: JourneyStage) -> str:
    return STAGE_CONTENT_FOCUS[stage]


def persona_presentation(persona: PersonaId) -> PersonaPresentation:
    return PERSONA_PRESENTATION[persona]
