from webhook_receiver import app

# gunicorn expects a module-level `app` variable; run the relay with:
# `gunicorn -w 4 --threads 2 -b 0.0.0.0:8080 --chdir tools/stripe_relay app:app`
