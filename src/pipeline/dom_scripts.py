"""
In-page scripts run through ``RenderedPage.evaluate(script, arg)``.

Each script is a single-argument arrow function returning JSON-serializable
data. Keeping them as named constants lets tests map a script to a canned
result without a browser.
"""

SCROLL_HEIGHT = "() => document.body ? document.body.scrollHeight : 0"

SCROLL_TO = "(y) => window.scrollTo(0, y)"

BODY_TEXT = "() => document.body ? document.body.innerText : ''"

# arg: fallback href fragment, e.g. "/posts/"
LISTING_FALLBACK_LINKS = """
(fragment) => {
  const out = [];
  document.querySelectorAll(`a[href*="${fragment}"]`).forEach((a) => {
    let name = '';
    const inner = a.querySelector('h3, h4, h5');
    if (inner) name = inner.textContent.trim();
    if (!name && a.parentElement) {
      const near = a.parentElement.querySelector('h3, h4, h5');
      if (near) name = near.textContent.trim();
    }
    if (!name) name = (a.textContent || '').trim();
    out.push({ name, href: a.href });
  });
  return out;
}
"""

# arg: {domain, top}
HEADER_LINK_COUNT = """
({ domain, top }) => {
  let n = 0;
  document.querySelectorAll('a[href]').forEach((a) => {
    if (!a.href.toLowerCase().includes(domain)) return;
    const r = a.getBoundingClientRect();
    if (r.top < top) n += 1;
  });
  return n;
}
"""

FIND_CONTACT_LINK = """
() => {
  const links = Array.from(document.querySelectorAll('a[href]'));
  for (const a of links) {
    const href = (a.getAttribute('href') || '').trim();
    const low = href.toLowerCase();
    if (!href || low.startsWith('#') || low.startsWith('javascript:') || low.startsWith('mailto:')) continue;
    const text = (a.textContent || '').toLowerCase();
    if (low.includes('/contact') || low.includes('/about') || low.includes('/support')
        || text.includes('contact') || text.includes('get in touch') || text.includes('reach out')) {
      return a.href;
    }
  }
  return '';
}
"""

# arg: {footer: [css selectors]}; returns raw email-shaped tokens
EMAIL_CANDIDATES = """
({ footer }) => {
  const re = /[a-zA-Z0-9._-]+@[a-zA-Z0-9._-]+\\.[a-zA-Z0-9._-]+/g;
  const out = [];
  const grab = (s) => { if (s) (s.match(re) || []).forEach((m) => out.push(m)); };
  const visible = (el) => {
    const st = window.getComputedStyle(el);
    return st.display !== 'none' && st.visibility !== 'hidden' && el.offsetParent !== null;
  };
  footer.forEach((sel) => {
    try { document.querySelectorAll(sel).forEach((el) => { if (visible(el)) grab(el.innerText); }); } catch (e) {}
  });
  document.querySelectorAll('[class*="contact"], [id*="contact"], section, address').forEach((el) => {
    if (visible(el) && /contact|email|reach/i.test(el.className + ' ' + el.id + ' ' + (el.innerText || '').slice(0, 200))) {
      grab(el.innerText);
    }
  });
  document.querySelectorAll('[data-email], [data-mail], [data-contact]').forEach((el) => {
    grab(el.getAttribute('data-email'));
    grab(el.getAttribute('data-mail'));
    grab(el.getAttribute('data-contact'));
  });
  document.querySelectorAll('p, span, div, li, a').forEach((el) => {
    if (el.children.length > 3 || !visible(el)) return;
    const t = el.innerText || '';
    if (/e-?mail|contact|write to|reach us/i.test(t)) grab(t);
  });
  document.querySelectorAll('script:not([src])').forEach((s) => grab(s.textContent));
  document.querySelectorAll('meta[content]').forEach((m) => grab(m.getAttribute('content')));
  return out;
}
"""

SOCIAL_ICON_LINKS = """
() => {
  const res = { twitter: '', linkedin: '' };
  const tw = /twitter|fa-x-|x-logo|x-icon|icon-x\\b/i;
  const li = /linkedin/i;
  const resolve = (el) => {
    if (el.tagName === 'A' && el.href) return el.href;
    const up = el.closest('a[href]');
    if (up) return up.href;
    const down = el.querySelector('a[href]');
    return down ? down.href : '';
  };
  document.querySelectorAll('a, button, div, span, i, svg').forEach((el) => {
    const sig = [el.getAttribute('class') || '', el.getAttribute('aria-label') || '',
                 el.getAttribute('title') || '', el.getAttribute('href') || ''].join(' ');
    if (!res.twitter && tw.test(sig)) {
      const href = resolve(el);
      if (/(^|\\/\\/|\\.)(twitter|x)\\.com\\//i.test(href)) res.twitter = href;
    }
    if (!res.linkedin && li.test(sig)) {
      const href = resolve(el);
      if (/linkedin\\.com/i.test(href)) res.linkedin = href;
    }
  });
  return res;
}
"""

LAST_RESORT_SCAN = """
() => {
  const res = { emails: [], twitter: '', linkedin: '', contact: '' };
  const re = /[a-zA-Z0-9._-]+@[a-zA-Z0-9._-]+\\.[a-zA-Z0-9._-]+/g;
  res.emails = (document.body ? document.body.innerText : '').match(re) || [];
  document.querySelectorAll('[data-email]').forEach((el) => res.emails.push(el.getAttribute('data-email') || ''));
  document.querySelectorAll('a[href]').forEach((a) => {
    const h = a.href || '';
    const t = (a.textContent || '').toLowerCase();
    if (!res.twitter && /(^|\\/\\/)(www\\.)?(twitter|x)\\.com\\//i.test(h)) res.twitter = h;
    if (!res.linkedin && /linkedin\\.com/i.test(h)) res.linkedin = h;
    if (!res.contact && t.includes('contact') && !h.startsWith('javascript:')) res.contact = h;
    if (h.toLowerCase().startsWith('mailto:')) res.emails.unshift(h.slice(7).split('?')[0]);
  });
  return res;
}
"""

DOM_PATTERN_SCAN = """
() => {
  const res = { emails: [], twitter: '', linkedin: '' };
  const re = /[a-zA-Z0-9._-]+@[a-zA-Z0-9._-]+\\.[a-zA-Z0-9._-]+/g;
  document.querySelectorAll('script').forEach((s) => {
    (s.textContent.match(re) || []).forEach((m) => res.emails.push(m));
  });
  document.querySelectorAll('li a[href], li[class*="social"] a, ul[class*="social"] a').forEach((a) => {
    const h = a.href || '';
    if (!res.twitter && /(^|\\/\\/|\\.)(twitter|x)\\.com\\//i.test(h)) res.twitter = h;
    if (!res.linkedin && /linkedin\\.com/i.test(h)) res.linkedin = h;
  });
  return res;
}
"""

SITE_URL_CANDIDATES = """
() => {
  const pick = (sel, attr) => { const el = document.querySelector(sel); return el ? (el.getAttribute(attr) || '') : ''; };
  let header = '';
  document.querySelectorAll('header a[href], nav a[href]').forEach((a) => {
    const t = (a.textContent || '').toLowerCase();
    if (!header && (t.includes('website') || t.includes('visit site'))) header = a.href;
  });
  return {
    header,
    canonical: pick('link[rel="canonical"]', 'href'),
    og: pick('meta[property="og:url"]', 'content'),
    meta: pick('meta[name="url"]', 'content') || pick('meta[name="site"]', 'content'),
    origin: window.location.origin,
  };
}
"""

# arg: {host, top}
SITE_CORROBORATION = """
({ host, top }) => {
  let headerMentions = 0;
  document.querySelectorAll('header, nav, [role="banner"]').forEach((el) => {
    const text = ((el.innerText || '') + ' ' + Array.from(el.querySelectorAll('a[href]')).map((a) => a.href).join(' ')).toLowerCase();
    headerMentions += text.split(host).length - 1;
  });
  let topLinks = 0;
  document.querySelectorAll('a[href]').forEach((a) => {
    if (a.href.toLowerCase().includes(host) && a.getBoundingClientRect().top < top) topLinks += 1;
  });
  return { headerMentions, topLinks };
}
"""
