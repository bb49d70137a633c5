from api.routes import app

# Vercel picks up `app`; this is for local development
if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8000)
