"""Free contact discovery for prospect domains.

Scraping cascade (stops at the first stage that yields an email):
  1. Seed article page (mailto links + body text)
  2. Author pages linked from the article
  3. Contact / about / team pages and individual profiles
  4. RDAP registration contacts
  5. Web search for "@domain"
  6. Web search for the author's name
  7. Web search for social handles

Plus the free email checks (syntax, MX, disposable, role aliases) and the
decision-maker scorer used to rank everything the pipeline finds.
"""
