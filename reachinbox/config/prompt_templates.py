"""
ReachInbox - Prompt Templates
==============================
All prompts live here so they can be reviewed and versioned
independently of application logic.

Exports
-------
CONTEXT_BLOCK_TEMPLATE, REPLY_PROMPT_TEMPLATE,
EMAIL_CATEGORIES, UNCATEGORIZED, CATEGORIZATION_PROMPT_TEMPLATE,
SAMPLE_EMAIL.
"""

# ══════════════════════════════════════════════════════════════════════
#  SUGGESTED REPLY
# ══════════════════════════════════════════════════════════════════════

# One retrieved snippet; ``index`` is 1-based.
CONTEXT_BLOCK_TEMPLATE: str = "[Context {index} - {category}]:\n{text}"

REPLY_PROMPT_TEMPLATE: str = """You are a helpful and professional email assistant. Draft a reply to the incoming email below using ONLY the product knowledge provided as context.

CONTEXT (Product Knowledge):
{context}

ORIGINAL EMAIL:
{email}

INSTRUCTIONS:
1. Answer ONLY from the context above.
2. Be concise, friendly, and professional; address the sender's questions directly.
3. If the context contains a meeting link, include it verbatim.
4. If the context contains pricing, include the figures verbatim.
5. Never state facts, prices, links, or commitments that are not in the context.
6. Close with a professional sign-off (e.g. "Best regards,").

Draft the reply now:"""


# ══════════════════════════════════════════════════════════════════════
#  EMAIL CATEGORIZATION
# ══════════════════════════════════════════════════════════════════════

EMAIL_CATEGORIES: tuple[str, ...] = ("Interested", "Meeting Booked", "Not Interested", "Spam", "Out of Office")

UNCATEGORIZED: str = "Uncategorized"

CATEGORIZATION_PROMPT_TEMPLATE: str = """You are an expert email classifier. Analyze the email below and categorize it into exactly one of these labels: {labels}.

Email to categorize:
Subject: {subject}
Body: {body}

Respond with ONLY ONE of these exact categories: {labels}"""


# ══════════════════════════════════════════════════════════════════════
#  SMOKE-TEST EMAIL (CLI)
# ══════════════════════════════════════════════════════════════════════

SAMPLE_EMAIL: str = """Hi there,

I'm interested in learning more about your email management platform.
Can you tell me about the pricing and features?
Also, I'd like to schedule a demo if possible.

Thanks,
John Smith"""
