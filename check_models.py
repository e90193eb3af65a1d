"""List the models the configured provider exposes for text generation."""
import google.generativeai as genai
from groq import Groq

from mcqforge.core.config import settings, require_credential

print(f"🔍 Provider: {settings.AI_PROVIDER}")

try:
    if settings.AI_PROVIDER == "groq":
        client = Groq(api_key=require_credential(settings.GROQ_API_KEY, "GROQ_API_KEY"))
        for model in client.models.list().data:
            marker = "🌟" if model.id == settings.GROQ_MODEL else "✅"
            print(f"{marker} {model.id}")
    else:
        genai.configure(api_key=require_credential(settings.GOOGLE_API_KEY, "GEMINI_API_KEY"))
        for m in genai.list_models():
            if 'generateContent' in m.supported_generation_methods:
                marker = "🌟" if m.name.endswith(settings.GEMINI_MODEL) else "✅"
                print(f"{marker} {m.name}")
except Exception as e:
    print(f"❌ Error: {e}")
