print("Checking imports...")
try:
    import httpx
    print("httpx: OK")
except ImportError as e:
    print(f"httpx Error: {e}")

try:
    import google.generativeai
    print("Gemini: OK")
except ImportError as e:
    print(f"Gemini Error: {e}")

try:
    import groq
    print("Groq: OK")
except ImportError as e:
    print(f"Groq Error: {e}")

try:
    from mcqforge.main import app
    print("App Import: OK")
except Exception as e:
    print(f"App Import Error: {e}")

print("Done.")
