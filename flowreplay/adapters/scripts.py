"""Browser-side scripts shared by the remote adapters.

The helpers compute the same candidate facts as ``locators.dom`` and
``DocumentContext.snapshot`` (DOM path, label association, form field
position, visible text) and return them as plain JSON. Scoring and the
visibility predicates stay in Python.

Page scripts are functions of one argument, element scripts take the element
first. ``webdriver_script`` wraps either kind for ``execute/sync``.
"""

_HELPERS = r"""
  const TEST_ID_ATTRIBUTES = ["data-testid", "data-test", "data-cy", "data-test-id"];
  const SNAPSHOT_ATTRIBUTES = ["id", "name", "type", "role", "placeholder", "aria-label", "title", "alt", ...TEST_ID_ATTRIBUTES];
  const FIELD_TAGS = ["input", "textarea", "select"];
  const TEXT_LIMIT = 50;

  const collapse = (s) => (s || "").replace(/\s+/g, " ").trim();

  const domPath = (el) => {
    const parts = [];
    let node = el;
    while (node && node.nodeType === 1) {
      const tag = node.tagName.toLowerCase();
      const parent = node.parentElement;
      if (!parent) {
        parts.unshift(tag);
        break;
      }
      let index = 1;
      let sibling = node.previousElementSibling;
      while (sibling) {
        if (sibling.tagName === node.tagName) index += 1;
        sibling = sibling.previousElementSibling;
      }
      parts.unshift(`${tag}:nth-of-type(${index})`);
      node = parent;
    }
    return parts.join(" > ");
  };

  const labelText = (el) => {
    const doc = el.ownerDocument;
    const id = el.id;
    if (id) {
      const label = doc.querySelector(`label[for="${CSS.escape(id)}"]`);
      const text = label ? (label.textContent || "").trim() : "";
      if (text) return text;
    }
    const enclosing = el.closest("label");
    if (enclosing) {
      const walker = doc.createTreeWalker(enclosing, NodeFilter.SHOW_TEXT);
      let text = "";
      let node;
      while ((node = walker.nextNode())) {
        if (!el.contains(node)) text += node.textContent;
      }
      text = text.trim();
      if (text) return text;
    }
    const labelledby = el.getAttribute("aria-labelledby");
    if (labelledby) {
      const text = labelledby.split(/\s+/)
        .map((ref) => doc.getElementById(ref))
        .filter(Boolean)
        .map((target) => (target.textContent || "").trim())
        .filter(Boolean)
        .join(" ");
      if (text) return text;
    }
    const previous = el.previousElementSibling;
    if (previous && previous.tagName === "LABEL") {
      const text = (previous.textContent || "").trim();
      if (text) return text;
    }
    const parent = el.parentElement;
    if (parent) {
      const label = parent.querySelector("label");
      if (label) {
        const boundTo = label.getAttribute("for");
        if (!boundTo || boundTo === id) {
          const text = (label.textContent || "").trim();
          if (text) return text;
        }
      }
    }
    return null;
  };

  const formFieldIndex = (el) => {
    if (!FIELD_TAGS.includes(el.tagName.toLowerCase())) return null;
    const form = el.closest("form");
    if (!form) return null;
    const index = Array.from(form.querySelectorAll("input, textarea, select")).indexOf(el);
    return index < 0 ? null : index + 1;
  };

  const visibleText = (el) => {
    const tag = el.tagName.toLowerCase();
    let text;
    if (tag === "input" || tag === "textarea") {
      text = el.getAttribute("value") || el.getAttribute("placeholder") || "";
      if (!text && tag === "textarea") text = el.textContent || "";
    } else if (tag === "img") {
      text = el.getAttribute("alt") || "";
    } else {
      text = Array.from(el.childNodes)
        .filter((node) => node.nodeType === Node.TEXT_NODE)
        .map((node) => node.textContent)
        .join(" ");
    }
    text = collapse(text);
    return text.length > TEXT_LIMIT ? text.slice(0, TEXT_LIMIT) : text;
  };

  const describe = (el, selector, order, index) => {
    const style = window.getComputedStyle(el);
    const tag = el.tagName.toLowerCase();
    const attributes = {};
    for (const name of SNAPSHOT_ATTRIBUTES) {
      if (el.hasAttribute(name)) attributes[name] = el.getAttribute(name);
    }
    const opacity = parseFloat(style.opacity);
    return {
      domPath: domPath(el),
      tagName: tag,
      selector: selector,
      selectorOrder: order,
      elementIndex: index,
      attributes: attributes,
      labelText: FIELD_TAGS.includes(tag) ? labelText(el) : null,
      formFieldIndex: formFieldIndex(el),
      text: visibleText(el),
      display: style.display,
      visibility: style.visibility,
      opacity: Number.isNaN(opacity) ? 1 : opacity,
      pointerEvents: style.pointerEvents,
      hasRect: el.getClientRects().length > 0,
      isRoot: el === el.ownerDocument.documentElement,
      disabled: !!el.disabled,
    };
  };
"""


def _page_script(body: str) -> str:
    return "(args) => {\n" + _HELPERS + body + "\n}"


QUERY_CANDIDATES_JS = _page_script(r"""
  const out = [];
  args.selectors.forEach((selector, order) => {
    let matches;
    try {
      matches = document.querySelectorAll(selector);
    } catch (e) {
      return;
    }
    Array.from(matches).forEach((el, index) => out.push(describe(el, selector, order, index)));
  });
  return out;
""")

FIND_BY_LABEL_JS = _page_script(r"""
  return Array.from(document.querySelectorAll("input, textarea, select"))
    .filter((el) => labelText(el) === args.text)
    .map((el, index) => describe(el, null, 0, index));
""")

FIND_BY_TEXT_JS = _page_script(r"""
  const wanted = collapse(args.text).toLowerCase();
  return Array.from(document.querySelectorAll("*"))
    .filter((el) => visibleText(el).toLowerCase() === wanted)
    .map((el, index) => describe(el, null, 0, index));
""")

SNAPSHOT_HTML_JS = "() => document.documentElement.outerHTML"

SET_VALUE_JS = r"""(el, value) => {
  const tag = el.tagName.toLowerCase();
  if (tag !== "input" && tag !== "textarea") {
    throw new Error(`<${tag}> is not a text control`);
  }
  const proto = tag === "textarea" ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
  const setter = Object.getOwnPropertyDescriptor(proto, "value").set;
  el.focus();
  setter.call(el, value);
  el.dispatchEvent(new Event("input", { bubbles: true }));
  el.dispatchEvent(new Event("change", { bubbles: true }));
}"""

SELECT_OPTION_JS = r"""(el, value) => {
  const options = Array.from(el.options || []);
  const option = options.find((o) => o.value === value)
    || options.find((o) => (o.textContent || "").trim() === value);
  if (!option) {
    throw new Error(`No option ${value}`);
  }
  el.value = option.value;
  el.dispatchEvent(new Event("input", { bubbles: true }));
  el.dispatchEvent(new Event("change", { bubbles: true }));
  return option.value;
}"""

SUBMIT_FORM_JS = r"""(el) => {
  const form = el.tagName === "FORM" ? el : (el.form || el.closest("form"));
  if (!form) return false;
  if (typeof form.requestSubmit === "function") {
    form.requestSubmit();
  } else {
    form.submit();
  }
  return true;
}"""

FOCUS_JS = "(el) => el.focus()"

READ_PROPERTY_JS = r"""(el, prop) => {
  if (prop === "value") return el.value == null ? "" : String(el.value);
  if (prop === "outerHTML") return el.outerHTML;
  return el.textContent || "";
}"""

READY_STATE_JS = "() => document.readyState"


def webdriver_script(function: str) -> str:
    """Wrap a function expression as a WebDriver ``execute/sync`` body."""
    return f"return ({function}).apply(null, arguments);"
