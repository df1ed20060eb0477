"""
Perinatal Companion

Conversational front-end that routes free-text messages to a scripted reply,
a local knowledge pack, a trusted web source, or open-ended supportive chat.

Philosophy:
- Safety first: emergency language is answered before any model call
- Local knowledge packs before the network, and the network only with consent
- Facts from the web are quoted verbatim, never paraphrased
- Nothing crosses the domain allow-list

Usage:
    from companion.common import load_config, LLMClient
    from companion.classifier import classify
    from companion.knowledge import KnowledgePackResolver, load_catalog
    from companion.retriever import GatewayClient, ExtractiveSummarizer
    from companion.router import ConversationRouter, SessionContext
"""

__version__ = "0.1.0"
