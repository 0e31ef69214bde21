"""
Scripts evaluated in the page context during playback.

Scripts follow the WebDriver ``execute_script`` convention: positional
arguments arrive as ``arguments[n]`` and the result is returned with
``return``. They only report structured data or act on an element chosen
host-side; no scoring happens in the page.

Collected candidates are kept on ``window.__replayCandidates`` so the action
scripts can address the element the host picked by its index.
"""

COLLECT_CANDIDATES = """
const selector = arguments[0];
const elements = Array.from(document.querySelectorAll(selector));
window.__replayCandidates = elements;
return elements.map((el, index) => {
  const rect = el.getBoundingClientRect();
  const style = window.getComputedStyle(el);
  const parent = el.parentElement;
  return {
    index: index,
    tag_name: el.tagName,
    role_attribute: el.getAttribute('role'),
    text: (el.textContent || '').trim().substring(0, 200),
    aria_label: el.getAttribute('aria-label') || '',
    placeholder: el.getAttribute('placeholder') || '',
    href: el.getAttribute('href') || '',
    parent_role: parent ? (parent.getAttribute('role') || parent.tagName.toLowerCase()) : null,
    parent_class_name: parent && typeof parent.className === 'string' ? parent.className : '',
    width: rect.width,
    height: rect.height,
    visibility: style.visibility,
    display: style.display
  };
});
"""

_LOOKUP_CANDIDATE = """
const candidates = window.__replayCandidates || [];
const element = candidates[arguments[0]];
if (!element || !element.isConnected) {
  return { success: false, error: 'Candidate element is no longer attached to the page' };
}
const originalOutline = element.style.outline;
element.style.outline = '3px solid #10b981';
setTimeout(() => { element.style.outline = originalOutline; }, 500);
"""

CLICK_CANDIDATE = _LOOKUP_CANDIDATE + """
element.scrollIntoView({ behavior: 'auto', block: 'center', inline: 'center' });
element.click();
return {
  success: true,
  element: element.tagName,
  text: (element.textContent || '').substring(0, 50),
  href: element.getAttribute('href')
};
"""

SET_INPUT_VALUE = _LOOKUP_CANDIDATE + """
if (element.tagName !== 'INPUT' && element.tagName !== 'TEXTAREA') {
  return { success: false, type_mismatch: true, error: 'Element is not an input: ' + element.tagName };
}
const value = arguments[1];
element.focus();
element.scrollIntoView({ behavior: 'auto', block: 'center' });
const proto = element.tagName === 'TEXTAREA' ? window.HTMLTextAreaElement.prototype : window.HTMLInputElement.prototype;
const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
setter.call(element, '');
element.dispatchEvent(new Event('input', { bubbles: true }));
setter.call(element, value);
element.dispatchEvent(new InputEvent('input', { bubbles: true, cancelable: true, data: value, inputType: 'insertText' }));
element.dispatchEvent(new Event('change', { bubbles: true }));
element.dispatchEvent(new Event('blur', { bubbles: true }));
return { success: true, element: element.tagName };
"""

SET_SELECT_VALUE = _LOOKUP_CANDIDATE + """
if (element.tagName !== 'SELECT') {
  return { success: false, type_mismatch: true, error: 'Element is not a select: ' + element.tagName };
}
element.focus();
element.scrollIntoView({ behavior: 'auto', block: 'center' });
element.value = arguments[1];
element.dispatchEvent(new Event('change', { bubbles: true }));
element.dispatchEvent(new Event('blur', { bubbles: true }));
return { success: true, element: element.tagName };
"""

READY_STATE = "return document.readyState;"

SCROLL_POSITION = "return { x: window.scrollX, y: window.scrollY };"

SCROLL_TO = "window.scrollTo({ top: arguments[1], left: arguments[0], behavior: 'instant' });"

PAGE_INFO = "return { url: window.location.href, title: document.title };"

PAGE_DIAGNOSTICS = """
const iframes = Array.from(document.querySelectorAll('iframe'));
let crossOrigin = 0;
for (const frame of iframes) {
  try {
    if (!(frame.contentDocument || (frame.contentWindow && frame.contentWindow.document))) {
      crossOrigin += 1;
    }
  } catch (err) {
    crossOrigin += 1;
  }
}
return {
  url: window.location.href,
  title: document.title,
  inputs: document.querySelectorAll('input:not([type="hidden"]), textarea').length,
  buttons: document.querySelectorAll('button, [role="button"], input[type="submit"]').length,
  iframes: iframes.length,
  cross_origin_iframes: crossOrigin
};
"""

RESPONSIVENESS_PROBE = "return 1 + 1;"
