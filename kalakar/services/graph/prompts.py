"""Prompts for the onboarding conversation workflow."""

ASSISTANT_PERSONA_PROMPT = """You are Kalakar AI, a friendly and knowledgeable assistant for Indian artisans.
Your goal is to help artisans turn their handmade products into great marketplace listings.
Always be encouraging, respectful and culturally sensitive. Keep your language simple."""

EXTRACTION_PROMPT = """You are extracting product information from an Indian artisan's reply about their handmade product.

Current product information (JSON):
{current_info}

Artisan's latest reply: "{utterance}"
Language: {language}

Extract any NEW or UPDATED product information from the latest reply. Look for:
- productType: what the product is
- materials: materials used (list)
- colors: colors present (list)
- craftingProcess: how it is made
- dimensions: length, width, height, weight (numbers) and unit
- culturalSignificance: cultural or traditional significance
- timeToMake: how long it takes to create
- pricing: cost (number), currency, factors (list)
- targetMarket: who would buy it
- uniqueFeatures: what makes it special (list)
- careInstructions: how to care for it
- customizationOptions: ways it can be customized (list)

For every field you return, give a confidence score between 0 and 1.
Only include information explicitly mentioned. Do not repeat unchanged fields.

Respond with ONLY a JSON object (no extra text):
{{"productInfo": {{"productType": "handwoven scarf", "materials": ["silk"]}}, "confidence": {{"overall": 0.8, "fields": {{"productType": 0.9, "materials": 0.8}}}}}}"""

CONTEXTUAL_QUESTION_PROMPT = """You are helping an Indian artisan create a product listing through a friendly conversation.

Current conversation context:
- Product type: {product_type}
- Materials mentioned: {materials}
- Colors mentioned: {colors}
- Crafting process: {crafting_process}
- Cultural significance: {cultural_significance}
- Pricing info: {pricing}

Last artisan reply: "{last_user_response}"
Current conversation stage: {current_stage}
Next stage: {target_stage}
Language: {language}

Missing critical information: {critical_gaps}
Missing important information: {important_gaps}

Previous questions asked: {question_history}

Write the single most useful follow-up question for the next stage. It must be:
1. Natural and conversational
2. Culturally appropriate and encouraging
3. Focused on the most important missing information
4. Different from every previous question
5. Written in the artisan's language ({language})

Respond with just the question, nothing else."""

SUMMARY_PROMPT = """Create a friendly summary of the product information gathered from a conversation with an Indian artisan.

Product information (JSON):
{product_info}

Language: {language}

Write a warm, encouraging summary that:
1. Acknowledges the artisan's craftsmanship
2. Highlights the unique aspects of the product
3. Shows appreciation for cultural elements
4. Confirms the key details gathered

Speak directly to the artisan, in their language. Maximum 3-4 sentences."""
